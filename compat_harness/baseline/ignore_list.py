"""Tests excluded from failure tracking entirely.

These are bugs in the compatibility suite itself or features that are
not implemented by design. They are skipped in every mode and never
enter the baseline.
"""

from __future__ import annotations

from typing import Iterable, Iterator

IGNORED_TESTS: tuple[str, ...] = (
    # The given code is not valid JavaScript.
    "rollup@function@circular-default-exports: handles circular default exports",
    # Panics: dynamic import rewriting is not supported yet
    "rollup@function@dynamic-import-rewriting: Dynamic import string specifier resolving",
    'rollup@function@deprecated@dynamic-import-name-warn: warns when specifying a custom importer function for formats other than "es"',
    # Import assertions
    "rollup@function@import-assertions@plugin-assertions-this-resolve: allows plugins to provide assertions for this.resolve",
)


class IgnoreList:
    """Read-only set of ignored test ids."""

    def __init__(self, ids: Iterable[str] = IGNORED_TESTS) -> None:
        self._ids = frozenset(ids)

    def contains(self, test_id: str) -> bool:
        return test_id in self._ids

    def __contains__(self, test_id: object) -> bool:
        return test_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)
