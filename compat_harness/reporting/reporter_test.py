"""Unit tests for run reporting."""

from __future__ import annotations

import io
import json
import tempfile
from pathlib import Path

import pytest
import yaml

from compat_harness.lifecycle.accumulator import RunStatus
from compat_harness.lifecycle.controller import RunOutcome
from compat_harness.reporting.reporter import (
    Reporter,
    format_status_table,
    print_run_summary,
)


def _outcome(**kwargs) -> RunOutcome:
    defaults = dict(
        mode="regression",
        status=RunStatus(total=5, failed=1, skipFailed=2, ignored=1, passed=1),
        baseline_before=2,
        baseline_after=2,
    )
    defaults.update(kwargs)
    return RunOutcome(**defaults)


class TestStatusTable:
    """Tests for the counters table."""

    def test_rows_in_order(self):
        table = format_status_table(RunStatus(total=12, failed=3, passed=9))
        lines = table.splitlines()
        assert lines[0].split() == ["Counter", "Count"]
        assert set(lines[1]) == {"-"}
        assert [line.split()[0] for line in lines[2:]] == [
            "total", "failed", "skipFailed", "ignored", "skipped", "passed",
        ]
        assert lines[2].split() == ["total", "12"]

    def test_counts_right_aligned(self):
        table = format_status_table(RunStatus(total=12345, passed=7))
        lines = table.splitlines()
        assert lines[2].endswith("12345")
        assert lines[-1].endswith("    7")


class TestPrintRunSummary:
    """Tests for the end-of-run console output."""

    def test_regression_detected_on_stderr(self):
        out, err = io.StringIO(), io.StringIO()
        outcome = _outcome(new_failures=["a@b", "c@d"], baseline_after=4)
        print_run_summary(outcome, out=out, err=err)

        assert "Regression detected: 2 test(s)" in err.getvalue()
        assert "  a@b" in err.getvalue()
        assert "failures" in out.getvalue()
        assert '"c@d"' in out.getvalue()
        assert "Baseline: 2 -> 4 known failures" in out.getvalue()

    def test_clean_regression_run(self):
        out, err = io.StringIO(), io.StringIO()
        print_run_summary(_outcome(), out=out, err=err)
        assert err.getvalue() == ""
        assert "failures []" in out.getvalue()
        assert "skipFailed" in out.getvalue()

    def test_update_mode_lists_removed(self):
        out, err = io.StringIO(), io.StringIO()
        outcome = _outcome(mode="update", removed=["x@y"], baseline_after=1)
        print_run_summary(outcome, out=out, err=err)
        assert "Removed from baseline (1):" in out.getvalue()
        assert "  x@y" in out.getvalue()
        lines = out.getvalue().splitlines()
        assert not any(line.startswith("failures") for line in lines)
        assert "Baseline: 1 -> 1 known failures" in lines

    def test_update_mode_nothing_removed(self):
        out = io.StringIO()
        print_run_summary(_outcome(mode="update"), out=out, err=io.StringIO())
        assert "No previously failing tests pass now" in out.getvalue()

    def test_orphans_and_timeouts(self):
        out, err = io.StringIO(), io.StringIO()
        outcome = _outcome(orphaned=["o@1"], timed_out=["t@1"])
        print_run_summary(outcome, out=out, err=err)
        assert "Timed out (1):" in out.getvalue()
        assert "Warning: 1 test(s) finished without a terminal state" in err.getvalue()
        assert "  o@1" in err.getvalue()

    def test_defaults_to_sys_streams(self, capsys):
        print_run_summary(_outcome(new_failures=["n@1"]))
        captured = capsys.readouterr()
        assert "Mode: regression" in captured.out
        assert "Regression detected" in captured.err


class TestReporter:
    """Tests for report files."""

    def test_generate_requires_outcome(self):
        with pytest.raises(ValueError, match="No run outcome"):
            Reporter().generate_report()

    def test_generate_report(self):
        reporter = Reporter()
        reporter.set_outcome(_outcome(new_failures=["a@b"]))
        reporter.set_baseline_path(Path("failed-tests.json"))
        report = reporter.generate_report()["report"]

        assert report["mode"] == "regression"
        assert report["status"]["skipFailed"] == 2
        assert report["new_failures"] == ["a@b"]
        assert report["regression_detected"] is True
        assert report["exit_code"] == 1
        assert report["baseline_path"] == "failed-tests.json"
        assert "generated_at" in report

    def test_write_json(self):
        reporter = Reporter()
        reporter.set_outcome(_outcome())
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "report.json"
            reporter.write(path)
            loaded = json.loads(path.read_text())
            assert loaded["report"]["status"]["total"] == 5

    def test_write_yaml(self):
        reporter = Reporter()
        reporter.set_outcome(_outcome(mode="update", removed=["x@y"]))
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "report.yaml"
            reporter.write(path)
            loaded = yaml.safe_load(path.read_text())
            assert loaded["report"]["removed"] == ["x@y"]
            assert loaded["report"]["exit_code"] == 0

    def test_yml_suffix_is_yaml(self):
        reporter = Reporter()
        reporter.set_outcome(_outcome())
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "report.yml"
            reporter.write(path)
            assert not path.read_text().lstrip().startswith("{")
            assert yaml.safe_load(path.read_text())["report"]["mode"] == "regression"
