"""pytest adapter for the regression-tracking harness.

Maps a pytest session onto the harness lifecycle events::

    pytest_sessionstart        -> HarnessController.start()
    pytest_runtest_setup       -> before_each (a harness skip becomes pytest.skip)
    pytest_runtest_call        -> a timed-out body is interrupted with SIGALRM
    pytest_runtest_makereport  -> after_each on the teardown report
    pytest_sessionfinish       -> after(); regressions fail the session

Enable with ``-p compat_harness.pytest_plugin --failure-baseline PATH``.
Without ``--failure-baseline`` or ``--harness-config`` the plugin does
nothing. Set ``UPDATE_FAILED=1`` (or pass ``--update-failed``) to run in
update mode.
"""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Any

import pytest

from compat_harness.baseline.failure_set import PersistedFailureSet
from compat_harness.baseline.ignore_list import IgnoreList
from compat_harness.lifecycle.config import (
    REGRESSION_MODE,
    UPDATE_MODE,
    HarnessConfig,
    mode_from_env,
)
from compat_harness.lifecycle.controller import (
    FAILED,
    PASSED,
    RUN_IN_PROGRESS,
    SKIPPED,
    HarnessController,
)
from compat_harness.reporting.reporter import Reporter, print_run_summary

_CONTROLLER_KEY = pytest.StashKey[HarnessController]()
_HANDLES_KEY = pytest.StashKey[dict]()
_REPORT_PATH_KEY = pytest.StashKey[Any]()
_RUNNING_KEY = pytest.StashKey[Any]()
_PREVIOUS_ALARM_KEY = pytest.StashKey[Any]()

# Session statuses after which the run is incomplete and the baseline is kept
_ABORTED_STATUSES = frozenset({pytest.ExitCode.INTERRUPTED, pytest.ExitCode.INTERNAL_ERROR})


def nodeid_title_path(nodeid: str) -> list[str]:
    """Split a pytest node id into a title path.

    ``tests/a/b_test.py::TestX::test_y[1]`` becomes
    ``["tests/a/b_test", "TestX", "test_y[1]"]``.
    """
    parts = nodeid.split("::")
    module = parts[0].replace("\\", "/")
    if module.endswith(".py"):
        module = module[: -len(".py")]
    return [module, *parts[1:]]


class ItemHandle:
    """Lifecycle view of a pytest item.

    ``state`` accumulates over the setup, call and teardown reports: a
    failure in any phase wins, otherwise the call outcome decides.
    """

    def __init__(self, item: pytest.Item) -> None:
        self.item = item
        self.state: str | None = None
        self.skip_reason: str | None = None
        self.timeout_error: BaseException | None = None
        self.timeout_reported = False
        self.in_call = False

    def title_path(self) -> list[str]:
        return nodeid_title_path(self.item.nodeid)

    def skip(self, reason: str) -> None:
        self.skip_reason = reason

    def fail(self, error: BaseException) -> None:
        # Called from the watchdog thread. A body still in its call phase
        # is interrupted; otherwise the failure is applied to the next
        # report pytest produces for this item.
        self.timeout_error = error
        if self.in_call:
            signal.pthread_kill(threading.main_thread().ident, signal.SIGALRM)

    def observe(self, report: pytest.TestReport) -> None:
        if report.failed:
            self.state = FAILED
        elif self.state == FAILED:
            return
        elif report.when == "setup" and report.skipped:
            self.state = SKIPPED
        elif report.when == "call":
            self.state = PASSED if report.passed else SKIPPED


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup(
        "compat-harness", "regression tracking against a failure baseline"
    )
    group.addoption(
        "--failure-baseline",
        dest="failure_baseline",
        default=None,
        metavar="PATH",
        help="Path to the failed-tests JSON baseline; enables the harness",
    )
    group.addoption(
        "--harness-config",
        dest="harness_config",
        default=None,
        metavar="PATH",
        help="Path to a harness JSON config file; enables the harness",
    )
    group.addoption(
        "--failure-timeout-ms",
        dest="failure_timeout_ms",
        type=float,
        default=None,
        metavar="MS",
        help="Per-test watchdog bound in milliseconds (default: 500)",
    )
    group.addoption(
        "--failure-report",
        dest="failure_report",
        default=None,
        metavar="PATH",
        help="Write the run outcome to PATH (.json, .yaml or .yml)",
    )
    group.addoption(
        "--update-failed",
        dest="update_failed",
        action="store_true",
        default=False,
        help="Run in update mode (same as UPDATE_FAILED=1)",
    )


def build_harness_config(config: pytest.Config) -> HarnessConfig | None:
    """Build the HarnessConfig from command line options.

    Returns:
        None when the harness is not enabled for this session.
    """
    baseline = config.getoption("failure_baseline")
    config_file = config.getoption("harness_config")
    if baseline is None and config_file is None:
        return None

    harness_config = HarnessConfig(Path(config_file) if config_file else None)
    harness_config.set_config(
        baseline_path=baseline,
        timeout_ms=config.getoption("failure_timeout_ms"),
        report_path=config.getoption("failure_report"),
    )
    return harness_config


def pytest_sessionstart(session: pytest.Session) -> None:
    config = session.config
    harness_config = build_harness_config(config)
    if harness_config is None:
        return
    if hasattr(config, "workerinput"):
        raise pytest.UsageError(
            "The failure baseline harness cannot run inside parallel workers"
        )

    mode = UPDATE_MODE if config.getoption("update_failed") else mode_from_env()
    controller = HarnessController(
        PersistedFailureSet(harness_config.baseline_path),
        IgnoreList(),
        mode=mode,
        timeout_ms=harness_config.timeout_ms,
        reporter=print_run_summary,
    )
    controller.start()
    config.stash[_CONTROLLER_KEY] = controller
    config.stash[_HANDLES_KEY] = {}
    config.stash[_REPORT_PATH_KEY] = harness_config.report_path
    _install_interrupt_handler(config)


def _install_interrupt_handler(config: pytest.Config) -> None:
    """Route SIGALRM to the test body that is currently running.

    Only possible on platforms with SIGALRM and from the main thread.
    Elsewhere timed-out bodies run to completion before they are failed.
    """
    if not hasattr(signal, "SIGALRM"):
        return
    if threading.current_thread() is not threading.main_thread():
        return

    def on_alarm(signum: int, frame: Any) -> None:
        handle = config.stash.get(_RUNNING_KEY, None)
        if handle is not None and handle.timeout_error is not None:
            raise handle.timeout_error

    config.stash[_RUNNING_KEY] = None
    config.stash[_PREVIOUS_ALARM_KEY] = signal.signal(signal.SIGALRM, on_alarm)


def _restore_interrupt_handler(config: pytest.Config) -> None:
    if _PREVIOUS_ALARM_KEY in config.stash:
        signal.signal(signal.SIGALRM, config.stash[_PREVIOUS_ALARM_KEY])
        del config.stash[_PREVIOUS_ALARM_KEY]


@pytest.hookimpl(wrapper=True)
def pytest_runtest_setup(item: pytest.Item):
    controller = item.config.stash.get(_CONTROLLER_KEY, None)
    if controller is not None:
        handle = ItemHandle(item)
        item.config.stash[_HANDLES_KEY][item.nodeid] = handle
        if not controller.before_each(handle):
            pytest.skip(handle.skip_reason or "skipped by failure baseline")
    return (yield)


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item):
    if _PREVIOUS_ALARM_KEY not in item.config.stash:
        return (yield)
    handle = item.config.stash[_HANDLES_KEY].get(item.nodeid)
    if handle is None:
        return (yield)

    item.config.stash[_RUNNING_KEY] = handle
    handle.in_call = True
    try:
        # The watchdog may have fired during setup.
        if handle.timeout_error is not None:
            raise handle.timeout_error
        return (yield)
    finally:
        item.config.stash[_RUNNING_KEY] = None
        handle.in_call = False


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    report = yield
    controller = item.config.stash.get(_CONTROLLER_KEY, None)
    if controller is None:
        return report
    handle = item.config.stash[_HANDLES_KEY].get(item.nodeid)
    if handle is None:
        return report

    if handle.timeout_error is not None and not handle.timeout_reported:
        if report.when in ("call", "teardown"):
            if report.passed:
                report.outcome = "failed"
                report.longrepr = str(handle.timeout_error)
            handle.timeout_reported = report.failed

    handle.observe(report)
    if report.when == "teardown":
        del item.config.stash[_HANDLES_KEY][item.nodeid]
        controller.after_each(handle)
    return report


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    _restore_interrupt_handler(session.config)
    controller = session.config.stash.get(_CONTROLLER_KEY, None)
    if controller is None or controller.state != RUN_IN_PROGRESS:
        return
    if exitstatus in _ABORTED_STATUSES:
        controller.abort()
        print(
            "Warning: test session aborted; failure baseline left unchanged"
        )
        return

    outcome = controller.after()

    report_path = session.config.stash.get(_REPORT_PATH_KEY, None)
    if report_path is not None:
        reporter = Reporter()
        reporter.set_outcome(outcome)
        reporter.set_baseline_path(controller.store.path)
        reporter.write(report_path)
        print(f"Report written to: {report_path}")

    if outcome.mode == REGRESSION_MODE and outcome.exit_code != 0:
        if session.exitstatus == pytest.ExitCode.OK:
            session.exitstatus = pytest.ExitCode.TESTS_FAILED
