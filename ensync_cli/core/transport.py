"""
Pluggable HTTP transport.

APIClient talks to the network only through a Transport, so tests can swap in
a scripted double and still exercise auth, retries and error handling.
"""

import http.client
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Protocol

from ensync_cli.core.errors import TransportError


@dataclass
class HTTPRequest:
    """A fully built outbound request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class HTTPResponse:
    """Raw response: status and undecoded body."""

    status: int
    body: bytes = b""


class Transport(Protocol):
    """Sends one request and returns the raw response, whatever its status."""

    def send(self, request: HTTPRequest, timeout: float) -> HTTPResponse: ...


class UrllibTransport:
    """
    Default transport built on urllib.

    Every call opens its own connection, so one instance can be shared by
    concurrent callers.
    """

    def __init__(self, opener: urllib.request.OpenerDirector | None = None):
        self._opener = opener or urllib.request.build_opener()

    def send(self, request: HTTPRequest, timeout: float) -> HTTPResponse:
        req = urllib.request.Request(
            request.url,
            data=request.body,
            headers=request.headers,
            method=request.method,
        )
        try:
            with self._opener.open(req, timeout=timeout) as response:
                return HTTPResponse(status=response.status, body=response.read())

        except urllib.error.HTTPError as e:
            # Error statuses are still responses; APIClient normalizes them
            try:
                body = e.read()
            finally:
                e.close()
            return HTTPResponse(status=e.code, body=body)

        except urllib.error.URLError as e:
            raise TransportError(f"Connection error: {e.reason}") from e

        except TimeoutError as e:
            raise TransportError(f"Request timed out after {timeout} seconds") from e

        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"Connection error: {e}") from e
