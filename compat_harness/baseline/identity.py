"""Stable string keys for tests derived from their suite/title path."""

from __future__ import annotations

from typing import Any, Sequence

from compat_harness.errors import InvalidTestContext

# Separator between suite titles and the leaf test title
ID_SEPARATOR = "@"


def make_test_id(title_path: Sequence[str]) -> str:
    """Join a title path (outermost suite first) into a test id.

    Raises:
        InvalidTestContext: If the title path is empty.
    """
    if not title_path:
        raise InvalidTestContext("Test has an empty title path")
    return ID_SEPARATOR.join(title_path)


def calc_test_id(test: Any) -> str:
    """Compute the id of a lifecycle test handle.

    Args:
        test: Object exposing ``title_path()``, or None when a hook fired
            outside a test boundary.

    Raises:
        InvalidTestContext: If there is no current test.
    """
    if test is None:
        raise InvalidTestContext("No current test")
    return make_test_id(list(test.title_path()))
