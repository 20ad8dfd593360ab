"""Request throttles: a token bucket and an evenly spacing leaky bucket."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class TokenBucket:
    """Allows ``rate`` events per second on average with bursts up to ``burst``.

    The bucket starts full.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 0:
            raise ValueError("burst must not be negative")
        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Take one token if available; False means the event must be rejected."""
        with self._lock:
            now = self._clock()
            elapsed = max(now - self._last, 0.0)
            self._last = now
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False


class LeakyBucket:
    """Spaces events at least ``1 / rate`` seconds apart, sleeping as needed.

    Idle time is not saved up: after a pause the next event passes at once,
    but the one after it still waits the full interval.
    """

    def __init__(
        self,
        rate: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = float(rate)
        self._per = 1.0 / self.rate
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = threading.Lock()

    def take(self) -> float:
        """Block until the next event may pass; returns the time it passes at."""
        with self._lock:
            now = self._clock()
            if self._last is None:
                self._last = now
                return now
            wait = self._per - (now - self._last)
            if wait > 0:
                self._sleep(wait)
                self._last = now + wait
            else:
                self._last = now
            return self._last