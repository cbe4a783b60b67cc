"""Baseline state: test ids, the persisted failure set and the ignore list."""

from compat_harness.baseline.failure_set import (
    DEFAULT_BASELINE_PATH,
    PersistedFailureSet,
    diff_baselines,
    format_baseline,
)
from compat_harness.baseline.identity import ID_SEPARATOR, calc_test_id, make_test_id
from compat_harness.baseline.ignore_list import IGNORED_TESTS, IgnoreList

__all__ = [
    "DEFAULT_BASELINE_PATH",
    "ID_SEPARATOR",
    "IGNORED_TESTS",
    "IgnoreList",
    "PersistedFailureSet",
    "calc_test_id",
    "diff_baselines",
    "format_baseline",
    "make_test_id",
]
