"""
Core HTTP client for the EnSync API.

Handles authentication, rate limiting, retries and error normalization.
"""

import json
import urllib.parse
from dataclasses import dataclass, field
from typing import Any

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ensync_cli.core.cancel import CancelToken
from ensync_cli.core.errors import (
    APIError,
    ConfigError,
    DecodeError,
    RequestCancelledError,
    TransportError,
)
from ensync_cli.core.ratelimit import TokenBucket
from ensync_cli.core.transport import HTTPRequest, HTTPResponse, Transport, UrllibTransport
from ensync_cli.log import get_logger

# Configuration
DEFAULT_BASE_URL = "http://localhost:8080/api/v1/ensync"
DEFAULT_TIMEOUT = 30.0
API_KEY_HEADER = "X-API-KEY"
JSON_CONTENT_TYPE = "application/json"


@dataclass
class RetryPolicy:
    """How transient failures are retried."""

    max_retries: int = 3
    min_wait: float = 1.0
    max_wait: float = 5.0

    def wait_strategy(self) -> wait_exponential:
        """Exponential backoff starting at min_wait, capped at max_wait."""
        return wait_exponential(multiplier=self.min_wait, min=self.min_wait, max=self.max_wait)


@dataclass
class RateLimit:
    """Token bucket settings: sustained calls per second and burst size."""

    rate: float = 10.0
    burst: int = 20


@dataclass
class ClientConfig:
    """Everything APIClient needs, spelled out explicitly."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    rate_limit: RateLimit | None = field(default_factory=RateLimit)
    logger: Any = None


def is_retryable(error: BaseException) -> bool:
    """Network failures and 5xx responses are transient; everything else is final."""
    if isinstance(error, RequestCancelledError):
        return False
    if isinstance(error, TransportError):
        return True
    if isinstance(error, APIError):
        # 501 means the server will never support the call
        return error.status >= 500 and error.status != 501
    return False


def parse_error_response(response: HTTPResponse) -> APIError:
    """Turn a >= 400 response into an APIError."""
    raw = response.body.decode("utf-8", errors="replace")
    try:
        error_data = json.loads(raw)
    except json.JSONDecodeError:
        error_data = None

    if not isinstance(error_data, dict):
        return APIError(f"request failed with status {response.status}: {raw}", status=response.status)

    message = error_data.get("message")
    if not message:
        # Handle both {"error": "message"} and {"error": {"message": "..."}}
        error_field = error_data.get("error")
        if isinstance(error_field, str):
            message = error_field
        elif isinstance(error_field, dict):
            message = error_field.get("message")
    return APIError(
        str(message or f"request failed with status {response.status}"),
        status=response.status,
        code=str(error_data.get("code") or ""),
    )


class APIClient:
    """
    Low-level HTTP client for the EnSync API.

    Handles:
    - Authentication via the X-API-KEY header
    - Token-bucket rate limiting (one token per call)
    - Retries with bounded exponential backoff for transient failures
    - Normalizing error responses into APIError
    """

    def __init__(self, config: ClientConfig, transport: Transport | None = None):
        """
        Initialize the API client.

        Args:
            config: Base URL, API key, timeout, retry policy, rate limit and logger
            transport: HTTP transport (defaults to UrllibTransport)

        Raises:
            ConfigError: If the API key or base URL is missing or malformed,
                or the timeout or rate limit is out of range

        """
        if not config.api_key:
            raise ConfigError("API key is required. Set ENSYNC_API_KEY or api_key in the config file")
        if not config.base_url:
            raise ConfigError("Base URL is required. Set ENSYNC_BASE_URL or base_url in the config file")
        parts = urllib.parse.urlsplit(config.base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigError(f"Base URL must be an http(s) URL with a host, got {config.base_url!r}")
        if not config.timeout > 0:
            raise ConfigError(f"Timeout must be positive, got {config.timeout!r}")

        self.base_url = config.base_url.rstrip("/")
        self.api_key = config.api_key
        self.timeout = config.timeout
        self.retry_policy = config.retry
        self._limiter = None
        if config.rate_limit:
            try:
                self._limiter = TokenBucket(config.rate_limit.rate, config.rate_limit.burst)
            except ValueError as e:
                raise ConfigError(f"Invalid rate limit: {e}") from e
        self._transport = transport or UrllibTransport()
        self._logger = config.logger or get_logger(__name__)

    def _build_url(self, path: str, query: dict[str, str] | None = None) -> str:
        """Build full URL from path and query."""
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"
        return url

    def _attempt(self, request: HTTPRequest, path: str, token: CancelToken) -> HTTPResponse:
        """Send one attempt; raise APIError for error statuses so retry can see it."""
        token.raise_if_cancelled()

        timeout = self.timeout
        remaining = token.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

        self._logger.debug("Sending request", method=request.method, path=path, url=request.url)
        response = self._transport.send(request, timeout)
        self._logger.debug("Received response", status=response.status, body_size=len(response.body))

        if response.status >= 400:
            raise parse_error_response(response)
        return response

    def _log_retry(self, retry_state: Any) -> None:
        error = None
        if retry_state.outcome and retry_state.outcome.failed:
            error = str(retry_state.outcome.exception())
        self._logger.debug(
            "Retrying request",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else None,
            error=error,
        )

    def request(
        self,
        method: str,
        path: str,
        query: dict[str, str] | None = None,
        body: Any = None,
        token: CancelToken | None = None,
    ) -> Any:
        """
        Make an HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, PUT)
            path: Server-relative path (e.g., /event)
            query: Query string parameters
            body: JSON-serializable request body
            token: Cancellation/deadline token for the whole call

        Returns:
            Parsed JSON response, or None for an empty body

        Raises:
            RateLimitError: Token cancelled while waiting for the rate limiter
            TransportError: Connection failure after retries, or cancellation
            APIError: Error status from the server
            DecodeError: Success response that is not valid JSON

        """
        token = token or CancelToken()

        if self._limiter is not None:
            self._limiter.wait(token)

        headers = {
            API_KEY_HEADER: self.api_key,
            "Accept": JSON_CONTENT_TYPE,
        }
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = JSON_CONTENT_TYPE

        request = HTTPRequest(method=method, url=self._build_url(path, query), headers=headers, body=data)

        retryer = Retrying(
            stop=stop_after_attempt(self.retry_policy.max_retries + 1),
            wait=self.retry_policy.wait_strategy(),
            retry=retry_if_exception(is_retryable),
            sleep=token.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        response = retryer(self._attempt, request, path, token)

        if not response.body.strip():
            return None
        try:
            return json.loads(response.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"Invalid JSON response: {e}") from e

    # =========================================================================
    # HTTP Methods
    # =========================================================================

    def get(
        self,
        path: str,
        query: dict[str, str] | None = None,
        token: CancelToken | None = None,
    ) -> Any:
        """Make a GET request."""
        return self.request("GET", path, query=query, token=token)

    def post(self, path: str, body: Any = None, token: CancelToken | None = None) -> Any:
        """Make a POST request."""
        return self.request("POST", path, body=body, token=token)

    def put(self, path: str, body: Any = None, token: CancelToken | None = None) -> Any:
        """Make a PUT request."""
        return self.request("PUT", path, body=body, token=token)
