"""
Token-bucket rate limiter for outbound API calls.

Safe to share between threads: all bucket state is guarded by a lock and
waiting happens outside of it.
"""

import threading
import time
from collections.abc import Callable

from ensync_cli.core.cancel import CancelToken
from ensync_cli.core.errors import RateLimitError


class TokenBucket:
    """
    Admit at most `rate` calls per second with a burst allowance of `burst`.

    Tokens are reserved up front; a caller that gives up while waiting hands
    its reservation back to the bucket.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = now - self._updated
        if elapsed > 0:
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            self._updated = now

    def _reserve(self) -> float:
        """Take one token and return how long the caller must wait for it."""
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def _release(self) -> None:
        with self._lock:
            self._refill(self._clock())
            self._tokens = min(float(self.burst), self._tokens + 1)

    def wait(self, token: CancelToken | None = None) -> None:
        """
        Block until a token is available.

        Raises:
            RateLimitError: If `token` is cancelled while waiting, or its
                deadline would pass before a token frees up.

        """
        if token is not None and token.cancelled:
            raise RateLimitError(f"rate limit wait aborted: {token.reason}")

        delay = self._reserve()
        if delay <= 0:
            return

        if token is None:
            time.sleep(delay)
            return

        remaining = token.remaining()
        if remaining is not None and remaining < delay:
            self._release()
            raise RateLimitError(f"rate limit wait of {delay:.2f}s would exceed the deadline")

        if token.wait(delay):
            self._release()
            raise RateLimitError(f"rate limit wait aborted: {token.reason}")
