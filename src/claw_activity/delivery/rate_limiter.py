"""Sliding-window rate limiting for outbound deliveries."""

import time
from collections import deque
from collections.abc import Callable

from claw_activity.constants import DEFAULT_RATE_LIMIT_PER_MINUTE, RATE_LIMIT_WINDOW_SECONDS


class SlidingWindowRateLimiter:
    """Admission control over a trailing time window.

    ``admit`` never blocks; callers that want to wait for capacity sleep
    and ask again.
    """

    def __init__(
        self,
        limit: int = DEFAULT_RATE_LIMIT_PER_MINUTE,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            limit: Maximum admissions allowed per window.
            window_seconds: Length of the trailing window in seconds.
            clock: Time source, in seconds.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._window: deque[float] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _prune(self, now: float) -> None:
        while self._window and now - self._window[0] >= self._window_seconds:
            self._window.popleft()

    def admit(self, now: float | None = None) -> bool:
        """Record and allow one delivery if the window has room.

        Args:
            now: Current time; defaults to the limiter's clock.

        Returns:
            True when admitted, False when the window is full.
        """
        if now is None:
            now = self._clock()
        self._prune(now)
        if len(self._window) >= self._limit:
            return False
        self._window.append(now)
        return True

    def occupancy(self, now: float | None = None) -> int:
        """Number of admissions inside the current window."""
        self._prune(self._clock() if now is None else now)
        return len(self._window)
