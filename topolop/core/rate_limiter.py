"""
Request budgets for vendor API calls.

Uses collections.deque for O(1) operations. Unlike a blocking limiter, a
budget never sleeps: once the rolling window is full the next request fails
fast with RateLimitError and the adapter gives up for this run.
"""

import time
from collections import deque
from collections.abc import Callable
from threading import Lock

from .exceptions import RateLimitError


class RequestBudget:
    """Thread-safe rolling-window request budget.

    Timestamps are stored in order, allowing efficient cleanup from the
    left side.
    """

    def __init__(self, calls: int, period: float, clock: Callable[[], float] = time.monotonic):
        """Initialize request budget.

        Args:
            calls: Number of calls allowed in the period
            period: Time period in seconds
            clock: Monotonic time source (injectable for tests)
        """
        if calls < 1:
            raise ValueError("calls must be at least 1")
        self.calls = calls
        self.period = period
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = Lock()

    def _expire(self, now: float) -> None:
        cutoff = now - self.period
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def acquire(self, name: str = "api") -> None:
        """Record one request, or raise RateLimitError if the window is full."""
        with self._lock:
            now = self._clock()
            self._expire(now)

            if len(self._timestamps) >= self.calls:
                retry_after = self.period - (now - self._timestamps[0])
                raise RateLimitError(
                    f"{name} request budget exhausted "
                    f"({self.calls} per {self.period:.0f}s)",
                    retry_after=max(retry_after, 0.0),
                )

            self._timestamps.append(now)

    @property
    def remaining(self) -> int:
        """Requests left in the current window."""
        with self._lock:
            self._expire(self._clock())
            return self.calls - len(self._timestamps)
