"""End-of-run reporting.

Prints the run counters as a table plus the regression / removal lists,
and writes the run outcome as a JSON or YAML report file.
"""

from __future__ import annotations

import datetime
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import yaml

from compat_harness.lifecycle.accumulator import COUNTER_NAMES, RunStatus
from compat_harness.lifecycle.config import REGRESSION_MODE, UPDATE_MODE

if TYPE_CHECKING:
    from compat_harness.lifecycle.controller import RunOutcome


def format_status_table(status: RunStatus) -> str:
    """Render the counters as a two-column table."""
    counts = status.to_dict()
    name_width = max(len("Counter"), *(len(name) for name in COUNTER_NAMES))
    count_width = max(len("Count"), *(len(str(counts[n])) for n in COUNTER_NAMES))

    header = f"{'Counter':<{name_width}}  {'Count':>{count_width}}"
    lines = [header, "-" * len(header)]
    for name in COUNTER_NAMES:
        lines.append(f"{name:<{name_width}}  {counts[name]:>{count_width}}")
    return "\n".join(lines)


def print_run_summary(
    outcome: RunOutcome,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> None:
    """Print the end-of-run summary for a RunOutcome."""
    out = out if out is not None else sys.stdout
    err = err if err is not None else sys.stderr

    print(file=out)
    print(f"Mode: {outcome.mode}", file=out)
    if outcome.mode == REGRESSION_MODE:
        print("failures", json.dumps(outcome.new_failures, indent=2), file=out)
    print(format_status_table(outcome.status), file=out)
    print(file=out)

    if outcome.timed_out:
        print(f"Timed out ({len(outcome.timed_out)}):", file=out)
        for test_id in outcome.timed_out:
            print(f"  {test_id}", file=out)

    if outcome.orphaned:
        print(
            f"Warning: {len(outcome.orphaned)} test(s) finished without a "
            "terminal state and were not tracked:",
            file=err,
        )
        for test_id in outcome.orphaned:
            print(f"  {test_id}", file=err)

    if outcome.mode == UPDATE_MODE:
        if outcome.removed:
            print(
                f"Removed from baseline ({len(outcome.removed)}):",
                file=out,
            )
            for test_id in outcome.removed:
                print(f"  {test_id}", file=out)
        else:
            print("No previously failing tests pass now", file=out)
    elif outcome.new_failures:
        print(
            f"Regression detected: {len(outcome.new_failures)} test(s) "
            "failed that are not in the failure baseline",
            file=err,
        )
        for test_id in outcome.new_failures:
            print(f"  {test_id}", file=err)

    print(
        f"Baseline: {outcome.baseline_before} -> {outcome.baseline_after} "
        "known failures",
        file=out,
    )


class Reporter:
    """Builds a structured report from a RunOutcome."""

    def __init__(self) -> None:
        self.outcome: RunOutcome | None = None
        self.baseline_path: Path | None = None

    def set_outcome(self, outcome: RunOutcome) -> None:
        self.outcome = outcome

    def set_baseline_path(self, path: Path) -> None:
        self.baseline_path = path

    def generate_report(self) -> dict[str, Any]:
        """Generate the report dict.

        Raises:
            ValueError: If no outcome has been set.
        """
        if self.outcome is None:
            raise ValueError("No run outcome to report")
        report: dict[str, Any] = {
            "generated_at": datetime.datetime.now(
                tz=datetime.timezone.utc
            ).isoformat(),
            **self.outcome.to_dict(),
        }
        if self.baseline_path is not None:
            report["baseline_path"] = str(self.baseline_path)
        return {"report": report}

    def write_report(self, path: Path) -> None:
        """Write the report as a JSON file."""
        report = self.generate_report()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(report, f, indent=2)
            f.write("\n")

    def write_yaml(self, path: Path) -> None:
        """Write the report as a YAML file."""
        report = self.generate_report()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(report, f, sort_keys=False)

    def write(self, path: Path) -> None:
        """Write the report, choosing the format from the file suffix."""
        if path.suffix in (".yaml", ".yml"):
            self.write_yaml(path)
        else:
            self.write_report(path)
