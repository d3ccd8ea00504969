"""
Fixed-window rate limiter.

Admits at most ``max_calls`` per window of ``window_seconds``. A refused
acquire returns ``False`` at once: there is no queueing, no backoff and
no jitter.
"""

import time
from typing import Callable


class FixedWindowRateLimiter:
    """Counts admitted calls in the current window.

    Args:
        max_calls: Calls admitted per window.
        window_seconds: Window length.
        clock: Monotonic time source in seconds (tests inject a fake).

    Usage::

        limiter = FixedWindowRateLimiter(max_calls=1, window_seconds=1.0)
        if not limiter.try_acquire():
            raise RateLimitExceededError(retry_after=limiter.retry_after())
    """

    def __init__(
        self,
        max_calls: int = 1,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls <= 0:
            raise ValueError(f"max_calls must be positive, got {max_calls}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._window_start: float = 0.0
        self._count: int = 0

    def try_acquire(self) -> bool:
        """Admit one call if the current window has quota left."""
        now = self._clock()
        if self._count == 0 or now - self._window_start >= self.window_seconds:
            self._window_start = now
            self._count = 0
        if self._count >= self.max_calls:
            return False
        self._count += 1
        return True

    def retry_after(self) -> float:
        """Seconds until the current window closes (0 when quota is free)."""
        if self._count < self.max_calls:
            return 0.0
        return max(0.0, self.window_seconds - (self._clock() - self._window_start))
