"""Unit tests for harness configuration."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

import pytest

from compat_harness.lifecycle.config import (
    DEFAULT_CONFIG,
    REGRESSION_MODE,
    UPDATE_MODE,
    HarnessConfig,
    mode_from_env,
    update_mode_from_env,
)


class TestHarnessConfigDefaults:
    """Tests for default configuration."""

    def test_no_path(self):
        config = HarnessConfig()
        assert config.baseline_path == Path("failed-tests.json")
        assert config.timeout_ms == 500.0
        assert config.report_path is None
        assert config.config == DEFAULT_CONFIG

    def test_missing_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = HarnessConfig(Path(tmpdir) / "harness.json")
            assert config.timeout_ms == 500.0


class TestHarnessConfigFile:
    """Tests for loading from a JSON file."""

    def test_load_values(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "harness.json"
            path.write_text(json.dumps({
                "baseline_path": "state/failed.json",
                "timeout_ms": 2000,
                "report_path": "out/report.yaml",
            }))
            config = HarnessConfig(path)
            assert config.baseline_path == Path(tmpdir) / "state" / "failed.json"
            assert config.timeout_ms == 2000.0
            assert config.report_path == Path(tmpdir) / "out" / "report.yaml"

    def test_absolute_baseline_path_kept(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "harness.json"
            target = Path(tmpdir) / "elsewhere" / "failed.json"
            path.write_text(json.dumps({"baseline_path": str(target)}))
            assert HarnessConfig(path).baseline_path == target

    def test_unknown_keys_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "harness.json"
            path.write_text(json.dumps({"timeout_ms": 10, "colour": "blue"}))
            config = HarnessConfig(path)
            assert "colour" not in config.config
            assert config.timeout_ms == 10.0

    def test_malformed_file_falls_back(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "harness.json"
            path.write_text("[not json")
            assert HarnessConfig(path).config == DEFAULT_CONFIG

    def test_non_dict_file_falls_back(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "harness.json"
            path.write_text("[1, 2]")
            assert HarnessConfig(path).config == DEFAULT_CONFIG


class TestSetConfig:
    """Tests for command line overrides."""

    def test_override_paths_relative_to_cwd(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = HarnessConfig(Path(tmpdir) / "harness.json")
            config.set_config(baseline_path="failed.json", report_path="r.json")
            assert config.baseline_path == Path("failed.json").absolute()
            assert config.report_path == Path("r.json").absolute()

    def test_none_leaves_values(self):
        config = HarnessConfig()
        config.set_config()
        assert config.config == DEFAULT_CONFIG

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError, match="timeout_ms must be positive"):
            HarnessConfig().set_config(timeout_ms=0)


class TestModeFromEnv:
    """Tests for UPDATE_FAILED handling."""

    def test_update_flag(self):
        assert update_mode_from_env({"UPDATE_FAILED": "1"}) is True
        assert mode_from_env({"UPDATE_FAILED": "1"}) == UPDATE_MODE

    @pytest.mark.parametrize("value", ["0", "true", "yes", "", "01"])
    def test_other_values_regression(self, value):
        assert update_mode_from_env({"UPDATE_FAILED": value}) is False
        assert mode_from_env({"UPDATE_FAILED": value}) == REGRESSION_MODE

    def test_absent_regression(self):
        assert mode_from_env({}) == REGRESSION_MODE

    def test_reads_process_env(self, monkeypatch):
        monkeypatch.setenv("UPDATE_FAILED", "1")
        assert update_mode_from_env() is True
        monkeypatch.delenv("UPDATE_FAILED")
        assert update_mode_from_env() is False
