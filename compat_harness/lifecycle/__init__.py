"""Run lifecycle: counters, timeout watchdog, configuration and the controller."""

from compat_harness.lifecycle.accumulator import COUNTER_NAMES, RunAccumulator, RunStatus
from compat_harness.lifecycle.config import (
    REGRESSION_MODE,
    UPDATE_MODE,
    HarnessConfig,
    mode_from_env,
    update_mode_from_env,
)
from compat_harness.lifecycle.controller import HarnessController, LifecycleTest, RunOutcome
from compat_harness.lifecycle.watchdog import TimeoutWatchdog, WatchdogToken

__all__ = [
    "COUNTER_NAMES",
    "REGRESSION_MODE",
    "UPDATE_MODE",
    "HarnessConfig",
    "HarnessController",
    "LifecycleTest",
    "RunAccumulator",
    "RunOutcome",
    "RunStatus",
    "TimeoutWatchdog",
    "WatchdogToken",
    "mode_from_env",
    "update_mode_from_env",
]
