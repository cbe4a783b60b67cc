"""Unit tests for test id derivation."""

from __future__ import annotations

import pytest

from compat_harness.baseline.identity import calc_test_id, make_test_id
from compat_harness.errors import InvalidTestContext


class _Handle:
    def __init__(self, *titles):
        self._titles = titles

    def title_path(self):
        return self._titles


class TestMakeTestId:
    """Tests for make_test_id."""

    def test_joins_with_separator(self):
        assert make_test_id(["rollup", "function", "name: does x"]) == (
            "rollup@function@name: does x"
        )

    def test_single_title(self):
        assert make_test_id(["alone"]) == "alone"

    def test_empty_path(self):
        with pytest.raises(InvalidTestContext):
            make_test_id([])


class TestCalcTestId:
    """Tests for calc_test_id."""

    def test_from_handle(self):
        assert calc_test_id(_Handle("a", "b", "c")) == "a@b@c"

    def test_accepts_tuple_title_path(self):
        assert calc_test_id(_Handle("x", "y")) == "x@y"

    def test_no_current_test(self):
        with pytest.raises(InvalidTestContext, match="No current test"):
            calc_test_id(None)

    def test_stable(self):
        handle = _Handle("s", "t")
        assert calc_test_id(handle) == calc_test_id(handle)
