"""Client-side throttling of Pangolin API calls."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Generator

from metrics import RATE_LIMIT_WAIT_SECONDS

logger = logging.getLogger(__name__)


class RateLimiter:
    """Caps concurrent Pangolin calls and spaces them out in time.

    Each caller reserves the next free call slot under a short lock and then
    sleeps outside of it, so waiting workers do not serialize on the lock.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        requests_per_second: float = 20.0,
    ) -> None:
        """Initialize rate limiter.

        Args:
            max_concurrent: Maximum number of in-flight API calls
            requests_per_second: Sustained call rate; 0 disables spacing
        """
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self._next_slot = 0.0
        self._lock = threading.Lock()
        self.max_concurrent = max_concurrent
        self.requests_per_second = requests_per_second

        logger.info(
            "Pangolin API rate limit: %d concurrent, %.1f requests/s",
            max_concurrent,
            requests_per_second,
        )

    def _reserve(self) -> float:
        """Claim the next call slot and return how long to wait for it."""
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self._interval
            return slot - now

    @contextmanager
    def acquire(self) -> Generator[None, None, None]:
        """Hold a call slot for the duration of the block."""
        started = time.monotonic()
        with self._slots:
            delay = self._reserve()
            if delay > 0:
                time.sleep(delay)
            waited = time.monotonic() - started
            if waited > 0.001:
                RATE_LIMIT_WAIT_SECONDS.observe(waited)
            yield

    def __repr__(self) -> str:
        return (
            f"RateLimiter(max_concurrent={self.max_concurrent}, "
            f"requests_per_second={self.requests_per_second})"
        )
