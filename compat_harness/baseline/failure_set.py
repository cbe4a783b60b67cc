"""Baseline file management for known-failing tests.

Reads and writes the failed-tests JSON file: a sorted, duplicate-free
array of test ids that are currently accepted as failing.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable

from compat_harness.errors import CorruptBaseline, PersistFailure

# Default baseline location, relative to the working directory
DEFAULT_BASELINE_PATH = Path("failed-tests.json")


def format_baseline(ids: Iterable[str]) -> str:
    """Render test ids in the canonical on-disk form."""
    return json.dumps(sorted(set(ids)), indent=2) + "\n"


def diff_baselines(
    old: Iterable[str], new: Iterable[str]
) -> tuple[list[str], list[str]]:
    """Compare two baselines.

    Returns:
        Tuple of (added, removed) sorted id lists.
    """
    old_set = set(old)
    new_set = set(new)
    return sorted(new_set - old_set), sorted(old_set - new_set)


class PersistedFailureSet:
    """Loads and saves the baseline of known-failing test ids.

    ``save`` is the only way the file changes. It replaces the whole file
    through a temporary file in the same directory, so an interrupted write
    leaves the previous baseline intact.
    """

    def __init__(self, path: str | Path = DEFAULT_BASELINE_PATH) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> set[str]:
        """Load the baseline.

        Returns:
            Set of test ids, empty if the file does not exist.

        Raises:
            CorruptBaseline: If the file cannot be read or is not a JSON
                array of strings.
        """
        if not self.path.exists():
            return set()
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise CorruptBaseline(self.path, f"unreadable: {e}") from e
        except UnicodeDecodeError as e:
            raise CorruptBaseline(self.path, f"invalid UTF-8: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptBaseline(self.path, f"invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise CorruptBaseline(
                self.path, f"expected a JSON array, got {type(data).__name__}"
            )
        bad = [item for item in data if not isinstance(item, str)]
        if bad:
            raise CorruptBaseline(
                self.path, f"expected only strings, found {bad[0]!r}"
            )
        return set(data)

    def is_canonical(self) -> bool:
        """Check whether the file already holds the canonical rendering.

        Raises:
            CorruptBaseline: If the file is corrupt.
        """
        if not self.path.exists():
            return True
        ids = self.load()
        return self.path.read_text(encoding="utf-8") == format_baseline(ids)

    def save(self, ids: Iterable[str]) -> None:
        """Overwrite the baseline with the given ids.

        Args:
            ids: Test ids; written sorted and deduplicated.

        Raises:
            PersistFailure: If the file could not be written.
        """
        content = format_baseline(ids)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=self.path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise PersistFailure(self.path, str(e)) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
