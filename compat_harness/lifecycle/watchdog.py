"""Per-test timeout detection independent of the engine's own timeouts.

Each armed test gets a token and a daemon timer. Firing and disarming
race freely: both claim the token under a lock and only the first claim
wins, so a disarmed token's timer is a no-op and a timeout is reported at
most once.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(eq=False)
class WatchdogToken:
    """Handle for one armed timer."""

    test_id: str
    bound_ms: float
    context: Any = None
    live: bool = True
    timer: Any = field(default=None, repr=False)


class TimeoutWatchdog:
    """Arms cancellable per-test timers keyed by test id.

    Args:
        on_timeout: Called with the token when a live timer expires. Runs on
            the timer thread, outside the watchdog lock.
        timer_factory: ``threading.Timer``-compatible constructor.
    """

    def __init__(
        self,
        on_timeout: Callable[[WatchdogToken], None],
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        self._on_timeout = on_timeout
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._armed: dict[str, WatchdogToken] = {}

    def arm(self, test_id: str, bound_ms: float, context: Any = None) -> WatchdogToken:
        """Start the timer for a test.

        Re-arming an id that is already armed cancels the previous timer.

        Returns:
            Token to pass to ``disarm``.
        """
        token = WatchdogToken(test_id=test_id, bound_ms=bound_ms, context=context)
        timer = self._timer_factory(bound_ms / 1000.0, self._fire, args=(token,))
        timer.daemon = True
        token.timer = timer

        with self._lock:
            previous = self._armed.get(test_id)
            if previous is not None:
                self._claim(previous)
            self._armed[test_id] = token
        timer.start()
        return token

    def disarm(self, token: WatchdogToken | None) -> bool:
        """Cancel a timer.

        Returns:
            True if the token was still live, False if it had already fired
            or been disarmed.
        """
        if token is None:
            return False
        with self._lock:
            return self._claim(token)

    def disarm_all(self) -> None:
        with self._lock:
            for token in list(self._armed.values()):
                self._claim(token)

    def is_armed(self, test_id: str) -> bool:
        with self._lock:
            return test_id in self._armed

    @property
    def armed_count(self) -> int:
        with self._lock:
            return len(self._armed)

    def _claim(self, token: WatchdogToken) -> bool:
        """Mark a token dead and cancel its timer. Caller holds the lock."""
        if not token.live:
            return False
        token.live = False
        if self._armed.get(token.test_id) is token:
            del self._armed[token.test_id]
        if token.timer is not None:
            token.timer.cancel()
        return True

    def _fire(self, token: WatchdogToken) -> None:
        with self._lock:
            if not token.live:
                return
            token.live = False
            if self._armed.get(token.test_id) is token:
                del self._armed[token.test_id]
        self._on_timeout(token)
