"""
Cancellation tokens.

A CancelToken is passed through every client call. It can be cancelled from
another thread and may carry a deadline; waits performed by the rate limiter
and the retry backoff return early as soon as it fires.
"""

import threading
import time

from ensync_cli.core.errors import RequestCancelledError


class CancelToken:
    """Cancellation and deadline signal shared by one logical call."""

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return "cancelled"
        return "deadline exceeded"

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """
        Block for up to `seconds`.

        Returns True if the token was cancelled or its deadline passed
        before the full duration elapsed.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            return True
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelledError(f"request {self.reason}")

    def sleep(self, seconds: float) -> None:
        """Sleep, raising RequestCancelledError if the token fires first."""
        if self.wait(seconds):
            raise RequestCancelledError(f"request {self.reason} during retry backoff")
