"""Pytest configuration - loads .env and provides a mock EnSync API."""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

import pytest
import structlog
from dotenv import load_dotenv

from ensync_cli.core.client import ClientConfig, RetryPolicy
from ensync_cli.core.transport import HTTPRequest, HTTPResponse

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

API_KEY = "test-api-key"

# Short waits so retry tests stay fast; bounds are checked separately
FAST_RETRY = RetryPolicy(max_retries=3, min_wait=0.01, max_wait=0.05)

EVENT_LIST = {
    "resultsLength": 2,
    "results": [
        {"id": 1, "name": "event1", "payload": {"key": "value1"}},
        {"id": 2, "name": "event2", "payload": {"key": "value2"}},
    ],
}

ACCESS_KEY_LIST = {
    "resultsLength": 2,
    "results": [
        {"key": "key1", "permissions": {"send": ["event1"], "receive": ["event2"]}},
        {"key": "key2", "permissions": {"send": ["event3"], "receive": ["event4"]}},
    ],
}


# =============================================================================
# Mock API Server
# =============================================================================


@dataclass
class RecordedRequest:
    """A request received by the mock server."""

    method: str
    path: str
    query: dict[str, list[str]]
    headers: dict[str, str]
    body: Any = None


@dataclass
class MockEnSyncServer:
    """
    In-process HTTP server that mimics the EnSync API.

    Access key permissions are stored, so a set followed by a get returns
    what was set. `respond()` overrides the response for a method and path.
    """

    requests: list[RecordedRequest] = field(default_factory=list)
    permissions: dict[str, dict[str, Any]] = field(default_factory=dict)
    overrides: dict[tuple[str, str], tuple[int, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(self))
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}"

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()

    def respond(self, method: str, path: str, status: int, body: Any) -> None:
        """Override the response; a str body is sent verbatim, anything else as JSON."""
        self.overrides[(method, path)] = (status, body)

    def requests_to(self, method: str, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method and r.path == path]

    def dispatch(self, request: RecordedRequest) -> tuple[int, Any]:  # noqa: PLR0911
        self.requests.append(request)
        method, path = request.method, request.path

        if (method, path) in self.overrides:
            return self.overrides[(method, path)]

        if request.headers.get("x-api-key") != API_KEY:
            return 401, {"message": "Invalid API key"}

        if path == "/event":
            if method == "GET":
                return 200, EVENT_LIST
            if method == "POST":
                return 201, None

        match = re.fullmatch(r"/event/([^/]+)", path)
        if match:
            name = unquote(match.group(1))
            if method == "PUT":
                return 200, None
            if method == "GET":
                if name == "missing":
                    return 404, {"message": "Event not found", "code": "EVENT_NOT_FOUND"}
                return 200, {"id": 1, "name": name, "payload": {"key": "value"}, "createdAt": "2024-01-01T00:00:00Z"}

        if path == "/access-key":
            if method == "GET":
                wanted = request.query.get("accessKey", [None])[0]
                results = [k for k in ACCESS_KEY_LIST["results"] if wanted in (None, k["key"])]
                return 200, {"resultsLength": len(results), "results": results}
            if method == "POST":
                return 200, {"accessKey": "new-access-key-123"}

        match = re.fullmatch(r"/access-key/permissions/([^/]+)", path)
        if match:
            key = unquote(match.group(1))
            if method == "GET":
                stored = self.permissions.get(key, {"send": ["event1"], "receive": ["event2"]})
                return 200, {"key": key, "permissions": stored}
            if method == "POST":
                self.permissions[key] = {"send": request.body["send"], "receive": request.body["receive"]}
                return 200, None

        match = re.fullmatch(r"/access/verify/([^/]+)", path)
        if match and method == "GET":
            return 200, {"status": unquote(match.group(1)) != "revoked-key"}

        return 404, {"message": "Not found"}


def _make_handler(mock: MockEnSyncServer) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: Any) -> None:
            pass

        def _handle(self) -> None:
            parsed = urlsplit(self.path)
            length = int(self.headers.get("Content-Length") or 0)
            raw = self.rfile.read(length) if length else b""
            request = RecordedRequest(
                method=self.command,
                path=parsed.path,
                query=parse_qs(parsed.query),
                headers={k.lower(): v for k, v in self.headers.items()},
                body=json.loads(raw) if raw else None,
            )
            status, payload = mock.dispatch(request)

            if payload is None:
                data = b""
            elif isinstance(payload, str):
                data = payload.encode("utf-8")
            else:
                data = json.dumps(payload).encode("utf-8")

            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        do_GET = _handle
        do_POST = _handle
        do_PUT = _handle

    return Handler


# =============================================================================
# Transport Double
# =============================================================================


class ScriptedTransport:
    """Transport double that replays queued responses or raises queued errors."""

    def __init__(self, *outcomes: HTTPResponse | Exception):
        self.outcomes = list(outcomes)
        self.requests: list[HTTPRequest] = []
        self.timeouts: list[float] = []

    def send(self, request: HTTPRequest, timeout: float) -> HTTPResponse:
        self.requests.append(request)
        self.timeouts.append(timeout)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def json_response(status: int, body: Any = None) -> HTTPResponse:
    data = b"" if body is None else json.dumps(body).encode("utf-8")
    return HTTPResponse(status=status, body=data)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_api():
    """Running mock API server."""
    server = MockEnSyncServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def api_config(mock_api: MockEnSyncServer) -> ClientConfig:
    """Client config pointed at the mock server."""
    return ClientConfig(base_url=mock_api.url, api_key=API_KEY, retry=FAST_RETRY)


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo logging configuration done by CLI tests."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
