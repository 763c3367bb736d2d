"""
Core layer - Types, errors and HTTP client.

This layer provides:
- Typed dataclasses for API requests and responses
- Low-level HTTP client with auth, rate limiting, retries and error handling
"""

from ensync_cli.core.cancel import CancelToken
from ensync_cli.core.client import APIClient, ClientConfig, RateLimit, RetryPolicy
from ensync_cli.core.errors import (
    APIError,
    CLIError,
    ConfigError,
    DecodeError,
    RateLimitError,
    RequestCancelledError,
    TransportError,
    ValidationError,
)
from ensync_cli.core.transport import HTTPRequest, HTTPResponse, Transport, UrllibTransport
from ensync_cli.core.types import (
    AccessKey,
    AccessKeyList,
    Event,
    EventList,
    ListParams,
    Permissions,
)

__all__ = [
    "APIClient",
    "APIError",
    "AccessKey",
    "AccessKeyList",
    "CLIError",
    "CancelToken",
    "ClientConfig",
    "ConfigError",
    "DecodeError",
    "Event",
    "EventList",
    "HTTPRequest",
    "HTTPResponse",
    "ListParams",
    "Permissions",
    "RateLimit",
    "RateLimitError",
    "RequestCancelledError",
    "RetryPolicy",
    "Transport",
    "TransportError",
    "UrllibTransport",
    "ValidationError",
]
