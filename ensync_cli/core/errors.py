"""
Error taxonomy for the EnSync client.

Every error raised by the client derives from CLIError so the command layer
can render any failure the same way.
"""

from collections.abc import Iterator
from contextlib import contextmanager


class CLIError(Exception):
    """Base error class for CLI errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.context: list[str] = []

    def add_context(self, description: str) -> None:
        """Prefix the error with the operation that was running."""
        self.context.insert(0, description)

    def describe(self) -> str:
        return self.message

    def __str__(self) -> str:
        return ": ".join([*self.context, self.describe()])


class ConfigError(CLIError):
    """Missing or malformed configuration (API key, base URL, config file)."""


class ValidationError(CLIError):
    """Validation error for local input/data issues (not API errors)."""


class TransportError(CLIError):
    """Connection, DNS or timeout failure before a response was received."""


class RequestCancelledError(TransportError):
    """The cancel token fired before or between attempts."""


class RateLimitError(CLIError):
    """Cancelled (or out of time) while waiting for a rate limit token."""


class DecodeError(CLIError):
    """Response body does not match the expected shape."""


class APIError(CLIError):
    """API error with status code, error code and message."""

    def __init__(
        self,
        message: str,
        status: int = 0,
        code: str = "",
    ):
        super().__init__(message)
        self.status = status
        self.code = code

    def describe(self) -> str:
        if not self.status:
            return self.message
        if self.code:
            return f"{self.message} (status {self.status}, code {self.code})"
        return f"{self.message} (status {self.status})"


@contextmanager
def operation(description: str) -> Iterator[None]:
    """Attach operation context to any CLIError raised inside the block."""
    try:
        yield
    except CLIError as e:
        e.add_context(description)
        raise
