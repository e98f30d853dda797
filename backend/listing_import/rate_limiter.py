"""
Minimum-interval rate limiter for model calls.

    limiter = MinIntervalRateLimiter(min_interval=1.0)
    limiter.acquire()   # blocks until at least 1s since the previous acquire
    response = client.generate(prompt)

One instance is shared by everything that talks to the model service, so
photo selection and the item assistant never burst past the interval
together. Clock and sleep are injectable for tests.
"""

import threading
import time
from typing import Callable, Optional

from .config import config
from .logger import get_strategy_logger

log = get_strategy_logger('rate_limiter')


class MinIntervalRateLimiter:
    """Enforces a minimum gap between consecutive calls."""

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    def acquire(self) -> float:
        """
        Wait until the interval since the previous call has elapsed.

        Returns:
            seconds spent waiting
        """
        with self._lock:
            waited = 0.0
            now = self._clock()
            if self._last_call is not None:
                elapsed = now - self._last_call
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    log.debug(f"Rate limiting: waiting {waited:.2f}s")
                    self._sleep(waited)
                    now = max(self._clock(), self._last_call + self.min_interval)
            self._last_call = now
            return waited

    def reset(self):
        with self._lock:
            self._last_call = None


# Process-wide limiter used when none is injected
default_rate_limiter = MinIntervalRateLimiter(min_interval=config.AI_MIN_INTERVAL_SECONDS)
