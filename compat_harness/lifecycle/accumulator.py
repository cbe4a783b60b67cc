"""Outcome counters for a single harness run."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

# Counter names in reporting order
COUNTER_NAMES = ("total", "failed", "skipFailed", "ignored", "skipped", "passed")


@dataclass(frozen=True)
class RunStatus:
    """Snapshot of the run counters.

    ``skipFailed`` and ``ignored`` are independent observations: a test
    that is both ignored and in the baseline increments both, so the
    counters do not partition ``total``.
    """

    total: int = 0
    failed: int = 0
    skipFailed: int = 0
    ignored: int = 0
    skipped: int = 0
    passed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RunAccumulator:
    """Mutable counters behind a RunStatus.

    Not synchronized; the controller serializes access.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {name: 0 for name in COUNTER_NAMES}

    def increment(self, counter: str, amount: int = 1) -> None:
        """Increment a counter.

        Raises:
            ValueError: If the counter name is unknown.
        """
        if counter not in self._counts:
            raise ValueError(
                f"Unknown counter '{counter}'. Must be one of: {list(COUNTER_NAMES)}"
            )
        self._counts[counter] += amount

    def snapshot(self) -> RunStatus:
        return RunStatus(**self._counts)
