"""Error taxonomy for the regression-tracking harness.

Per-test conditions (``TestTimedOut``) are folded into the run counters.
Everything else is fatal to the run and propagates to the caller.
"""

from __future__ import annotations

from pathlib import Path


class HarnessError(Exception):
    """Base class for all harness errors."""


class InvalidTestContext(HarnessError):
    """A lifecycle hook was invoked without an active test."""


class HarnessStateError(HarnessError):
    """A lifecycle event arrived while the controller was in the wrong state."""


class CorruptBaseline(HarnessError):
    """The baseline file exists but is not a JSON array of strings."""

    def __init__(self, path: str | Path, reason: str) -> None:
        super().__init__(f"Corrupt baseline {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class PersistFailure(HarnessError):
    """Writing the baseline file failed."""

    def __init__(self, path: str | Path, reason: str) -> None:
        super().__init__(f"Failed to write baseline {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class TestTimedOut(HarnessError):
    """Synthesized failure for a test that did not finish within its bound."""

    __test__ = False

    def __init__(self, test_id: str) -> None:
        super().__init__(f"Test timed out: [{test_id}]")
        self.test_id = test_id
