"""Regression-tracking policy layered on a test-lifecycle event stream.

The controller receives three events from the test engine:

- ``before_each(test)``: decide whether the test runs, arm its watchdog.
- ``after_each(test)``: disarm the watchdog, fold the terminal state into
  the counters and the working delta.
- ``after()``: reconcile the delta against the baseline, report, persist.

**Regression mode** (default):
    Ignored tests and tests already in the baseline are skipped. A failure
    not in the baseline is a regression; at the end of the run the
    baseline becomes ``baseline | regressions`` and the outcome carries a
    non-zero exit code.

**Update mode** (``UPDATE_FAILED=1``):
    Only baseline tests that are not ignored run. Those that now pass are
    removed; the baseline becomes ``baseline - passed``. Nothing is added.

The test handle is passed explicitly to every event and correlated by its
id, so tests may execute concurrently. All shared accumulation happens
under one lock.
"""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

from compat_harness.baseline.failure_set import PersistedFailureSet
from compat_harness.baseline.identity import calc_test_id
from compat_harness.baseline.ignore_list import IgnoreList
from compat_harness.errors import HarnessStateError, InvalidTestContext, TestTimedOut
from compat_harness.lifecycle.accumulator import RunAccumulator, RunStatus
from compat_harness.lifecycle.config import REGRESSION_MODE, UPDATE_MODE, VALID_MODES
from compat_harness.lifecycle.watchdog import TimeoutWatchdog, WatchdogToken

# Controller states
IDLE = "idle"
RUN_IN_PROGRESS = "run_in_progress"
RECONCILING = "reconciling"
DONE = "done"

# Terminal test states reported by the engine
PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"
TERMINAL_STATES = frozenset({PASSED, FAILED})
SKIP_STATES = frozenset({SKIPPED, "pending"})


class LifecycleTest(Protocol):
    """What the harness needs from the engine's test object."""

    state: str | None

    def title_path(self) -> Sequence[str]: ...

    def skip(self, reason: str) -> None: ...

    def fail(self, error: BaseException) -> None: ...


@dataclass
class _InFlight:
    test_id: str
    token: WatchdogToken | None = None
    timed_out: bool = False


@dataclass
class RunOutcome:
    """Result of reconciling one run against the baseline."""

    mode: str
    status: RunStatus
    new_failures: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)
    baseline_before: int = 0
    baseline_after: int = 0

    @property
    def regression_detected(self) -> bool:
        return self.mode == REGRESSION_MODE and bool(self.new_failures)

    @property
    def exit_code(self) -> int:
        return 1 if self.regression_detected else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "status": self.status.to_dict(),
            "new_failures": list(self.new_failures),
            "removed": list(self.removed),
            "orphaned": list(self.orphaned),
            "timed_out": list(self.timed_out),
            "baseline_before": self.baseline_before,
            "baseline_after": self.baseline_after,
            "regression_detected": self.regression_detected,
            "exit_code": self.exit_code,
        }


class HarnessController:
    """Drives one harness run in regression or update mode.

    Args:
        store: Baseline file accessor; loaded in ``start``, saved in ``after``.
        ignore_list: Tests excluded from tracking.
        mode: ``"regression"`` or ``"update"``.
        timeout_ms: Watchdog bound per executed test.
        timer_factory: Passed through to the watchdog.
        reporter: Called with the RunOutcome before the baseline is saved.
    """

    def __init__(
        self,
        store: PersistedFailureSet,
        ignore_list: IgnoreList | None = None,
        mode: str = REGRESSION_MODE,
        timeout_ms: float = 500,
        timer_factory: Callable[..., Any] = threading.Timer,
        reporter: Callable[[RunOutcome], None] | None = None,
    ) -> None:
        if mode not in VALID_MODES:
            raise ValueError(f"Unknown harness mode: {mode}")
        self.store = store
        self.ignore_list = ignore_list if ignore_list is not None else IgnoreList()
        self.mode = mode
        self.timeout_ms = timeout_ms
        self._reporter = reporter
        self._watchdog = TimeoutWatchdog(self._on_timeout, timer_factory)
        self._lock = threading.Lock()
        self._state = IDLE
        self._baseline: frozenset[str] = frozenset()
        self._status = RunAccumulator()
        self._in_flight: dict[str, _InFlight] = {}
        self._harness_skipped: set[str] = set()
        self._failure_delta: set[str] = set()
        self._passed_previously_failing: set[str] = set()
        self._timed_out: set[str] = set()
        self._orphaned: set[str] = set()

    @property
    def state(self) -> str:
        return self._state

    @property
    def baseline(self) -> frozenset[str]:
        return self._baseline

    @property
    def failure_delta(self) -> list[str]:
        with self._lock:
            return sorted(self._failure_delta)

    @property
    def passed_previously_failing(self) -> list[str]:
        with self._lock:
            return sorted(self._passed_previously_failing)

    def status(self) -> RunStatus:
        with self._lock:
            return self._status.snapshot()

    def start(self) -> None:
        """Load the baseline and begin the run.

        Raises:
            CorruptBaseline: If the baseline file is malformed.
        """
        with self._lock:
            self._require_state(IDLE, "start")
            self._baseline = frozenset(self.store.load())
            self._state = RUN_IN_PROGRESS

    def before_each(self, test: LifecycleTest | None) -> bool:
        """Decide whether a test runs.

        Returns:
            True if the test should execute; False if it was skipped (the
            test's ``skip`` has been called).
        """
        test_id = calc_test_id(test)
        reason: str | None = None

        with self._lock:
            self._require_state(RUN_IN_PROGRESS, "before_each")
            self._status.increment("total")

            if self.mode == UPDATE_MODE:
                if test_id in self.ignore_list:
                    self._status.increment("ignored")
                    reason = "ignored test"
                elif test_id not in self._baseline:
                    self._status.increment("skipped")
                    reason = "not in failure baseline"
            else:
                # Both counters move when a test is ignored and known-failing.
                if test_id in self._baseline:
                    self._status.increment("skipFailed")
                    reason = "known failure"
                if test_id in self.ignore_list:
                    self._status.increment("ignored")
                    reason = "ignored test"

            if reason is not None:
                self._harness_skipped.add(test_id)
            else:
                self._in_flight[test_id] = _InFlight(test_id)

        if reason is not None:
            test.skip(reason)
            return False

        if self.mode == UPDATE_MODE:
            print(test_id)

        token = self._watchdog.arm(test_id, self.timeout_ms, context=test)
        with self._lock:
            record = self._in_flight.get(test_id)
            if record is not None and not record.timed_out:
                record.token = token
        return True

    def after_each(self, test: LifecycleTest | None) -> None:
        """Record the terminal state of a test."""
        test_id = calc_test_id(test)
        state = test.state

        with self._lock:
            self._require_state(RUN_IN_PROGRESS, "after_each")
            record = self._in_flight.pop(test_id, None)
            if record is None:
                if test_id in self._harness_skipped:
                    self._harness_skipped.discard(test_id)
                    return
                raise InvalidTestContext(
                    f"after_each for a test that was never started: [{test_id}]"
                )
            self._watchdog.disarm(record.token)
            if record.timed_out:
                # Already counted as failed when the watchdog fired.
                return
            self._record_outcome(test_id, state)

    def after(self) -> RunOutcome:
        """Reconcile the run against the baseline and persist it.

        Raises:
            PersistFailure: If the baseline could not be written.
        """
        with self._lock:
            self._require_state(RUN_IN_PROGRESS, "after")
            self._state = RECONCILING
            self._watchdog.disarm_all()
            orphaned = self._orphaned | {
                test_id
                for test_id, record in self._in_flight.items()
                if not record.timed_out
            }

            if self.mode == UPDATE_MODE:
                new_baseline = self._baseline - self._passed_previously_failing
                new_failures: list[str] = []
                removed = sorted(self._passed_previously_failing)
            else:
                new_baseline = self._baseline | self._failure_delta
                new_failures = sorted(self._failure_delta)
                removed = []

            outcome = RunOutcome(
                mode=self.mode,
                status=self._status.snapshot(),
                new_failures=new_failures,
                removed=removed,
                orphaned=sorted(orphaned),
                timed_out=sorted(self._timed_out),
                baseline_before=len(self._baseline),
                baseline_after=len(new_baseline),
            )

        if self._reporter is not None:
            self._reporter(outcome)
        self.store.save(new_baseline)
        self._state = DONE
        return outcome

    def abort(self) -> None:
        """End an incomplete run without touching the baseline."""
        with self._lock:
            self._require_state(RUN_IN_PROGRESS, "abort")
            self._watchdog.disarm_all()
            self._state = DONE

    def _record_outcome(self, test_id: str, state: str | None) -> None:
        """Fold one terminal state into the run. Caller holds the lock."""
        if state == FAILED:
            self._status.increment("failed")
            if self.mode == REGRESSION_MODE and test_id not in self._baseline:
                self._failure_delta.add(test_id)
        elif state == PASSED:
            self._status.increment("passed")
            if self.mode == UPDATE_MODE and test_id in self._baseline:
                self._passed_previously_failing.add(test_id)
        elif state in SKIP_STATES:
            self._status.increment("skipped")
        else:
            self._orphaned.add(test_id)

    def _on_timeout(self, token: WatchdogToken) -> None:
        test = token.context
        with self._lock:
            if self._state != RUN_IN_PROGRESS:
                return
            record = self._in_flight.get(token.test_id)
            if record is None or record.timed_out:
                return
            if test is not None and getattr(test, "state", None) in TERMINAL_STATES:
                return
            record.timed_out = True
            self._timed_out.add(token.test_id)
            self._record_outcome(token.test_id, FAILED)

        error = TestTimedOut(token.test_id)
        print(f"Error: {error} after {token.bound_ms:g}ms", file=sys.stderr)
        if test is not None:
            test.fail(error)

    def _require_state(self, expected: str, event: str) -> None:
        if self._state != expected:
            raise HarnessStateError(
                f"Cannot handle '{event}' in state '{self._state}' "
                f"(expected '{expected}')"
            )
