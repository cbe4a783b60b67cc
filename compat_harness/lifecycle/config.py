"""Harness configuration.

Reads an optional JSON config file holding the baseline location, the
per-test timeout bound and the run report path. The operating mode comes
from the ``UPDATE_FAILED`` environment variable.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

# Environment variable selecting update mode
UPDATE_FAILED_ENV = "UPDATE_FAILED"

REGRESSION_MODE = "regression"
UPDATE_MODE = "update"
VALID_MODES = frozenset({REGRESSION_MODE, UPDATE_MODE})

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "baseline_path": "failed-tests.json",
    "timeout_ms": 500,
    "report_path": None,
}


def update_mode_from_env(environ: Mapping[str, str] | None = None) -> bool:
    """Return True only when UPDATE_FAILED is exactly "1"."""
    if environ is None:
        environ = os.environ
    return environ.get(UPDATE_FAILED_ENV) == "1"


def mode_from_env(environ: Mapping[str, str] | None = None) -> str:
    return UPDATE_MODE if update_mode_from_env(environ) else REGRESSION_MODE


class HarnessConfig:
    """Manages the harness JSON configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            text = self.path.read_text()
            data = json.loads(text)
            if isinstance(data, dict):
                self._data = {
                    **DEFAULT_CONFIG,
                    **{k: v for k, v in data.items() if k in DEFAULT_CONFIG},
                }
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    @property
    def config(self) -> dict[str, Any]:
        """Get the full configuration dict."""
        return dict(self._data)

    @property
    def baseline_path(self) -> Path:
        """Get the baseline file location.

        Relative paths are resolved against the config file's directory
        when the config came from a file.
        """
        path = Path(self._data.get("baseline_path") or DEFAULT_CONFIG["baseline_path"])
        if not path.is_absolute() and self.path is not None:
            path = self.path.parent / path
        return path

    @property
    def timeout_ms(self) -> float:
        """Get the per-test watchdog bound in milliseconds."""
        return float(self._data.get("timeout_ms", DEFAULT_CONFIG["timeout_ms"]))

    @property
    def report_path(self) -> Path | None:
        """Get the run report path (None = no report)."""
        val = self._data.get("report_path")
        if val is None:
            return None
        path = Path(val)
        if not path.is_absolute() and self.path is not None:
            path = self.path.parent / path
        return path

    def set_config(
        self,
        baseline_path: str | Path | None = None,
        timeout_ms: float | None = None,
        report_path: str | Path | None = None,
    ) -> None:
        """Override configuration values, e.g. from command line options.

        Paths given here are taken relative to the working directory.
        """
        if baseline_path is not None:
            self._data["baseline_path"] = str(Path(baseline_path).absolute())
        if timeout_ms is not None:
            if timeout_ms <= 0:
                raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")
            self._data["timeout_ms"] = timeout_ms
        if report_path is not None:
            self._data["report_path"] = str(Path(report_path).absolute())
