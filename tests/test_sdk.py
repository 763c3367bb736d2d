"""
Tests for the SDK request builders against the in-process mock API.
"""

import pytest

from ensync_cli.core.client import ClientConfig
from ensync_cli.core.errors import APIError, DecodeError, TransportError, ValidationError
from ensync_cli.core.types import Event, ListParams, Permissions
from ensync_cli.sdk import EnSyncClient
from tests.conftest import API_KEY, FAST_RETRY


@pytest.fixture
def client(api_config: ClientConfig) -> EnSyncClient:
    return EnSyncClient(api_config)


@pytest.fixture
def bad_key_client(mock_api) -> EnSyncClient:
    return EnSyncClient(ClientConfig(base_url=mock_api.url, api_key="wrong-key", retry=FAST_RETRY))


# =============================================================================
# Events
# =============================================================================


class TestEvents:
    def test_list(self, client, mock_api):
        events = client.events.list(ListParams(page_index=0, limit=10, order="DESC", order_by="createdAt"))

        assert events.results_length == 2
        assert len(events.results) == 2
        assert [(e.id, e.name, e.payload) for e in events.results] == [
            (1, "event1", {"key": "value1"}),
            (2, "event2", {"key": "value2"}),
        ]

        request = mock_api.requests_to("GET", "/event")[0]
        assert request.headers["x-api-key"] == API_KEY
        assert request.headers["accept"] == "application/json"
        assert request.query == {
            "pageIndex": ["0"],
            "limit": ["10"],
            "order": ["DESC"],
            "orderBy": ["createdAt"],
        }

    def test_list_with_invalid_api_key(self, bad_key_client, mock_api):
        with pytest.raises(APIError) as exc_info:
            bad_key_client.events.list()

        error = exc_info.value
        assert error.status == 401
        assert "Invalid API key" in error.message
        assert str(error).startswith("failed to list events: Invalid API key")
        assert len(mock_api.requests) == 1

    def test_create(self, client, mock_api):
        assert client.events.create(Event(name="new-event", payload={"key": "value"})) is None

        request = mock_api.requests_to("POST", "/event")[0]
        assert request.body == {"name": "new-event", "payload": {"key": "value"}}
        assert request.headers["content-type"] == "application/json"

    def test_update_addresses_event_by_id(self, client, mock_api):
        client.events.update(Event(id=123, name="updated-event", payload={"key": "new-value"}))

        request = mock_api.requests_to("PUT", "/event/123")[0]
        assert request.body == {"name": "updated-event", "payload": {"key": "new-value"}}

    def test_update_requires_id(self, client, mock_api):
        with pytest.raises(ValidationError, match="failed to update event: event id is required"):
            client.events.update(Event(name="no-id"))
        assert mock_api.requests == []

    def test_get_by_name(self, client):
        event = client.events.get("test-event")

        assert event.name == "test-event"
        assert event.id == 1
        assert event.payload == {"key": "value"}
        assert event.created_at == "2024-01-01T00:00:00Z"
        assert event.updated_at is None

    def test_get_escapes_name(self, client, mock_api):
        event = client.events.get("orders/created v2")
        assert event.name == "orders/created v2"
        assert mock_api.requests[0].path == "/event/orders%2Fcreated%20v2"

    def test_get_missing(self, client):
        with pytest.raises(APIError) as exc_info:
            client.events.get("missing")

        assert exc_info.value.status == 404
        assert exc_info.value.code == "EVENT_NOT_FOUND"
        assert str(exc_info.value) == (
            "failed to get event 'missing': Event not found (status 404, code EVENT_NOT_FOUND)"
        )

    def test_list_shape_mismatch(self, client, mock_api):
        mock_api.respond("GET", "/event", 200, {"resultsLength": 1, "results": {"id": 1}})
        with pytest.raises(DecodeError, match="failed to list events"):
            client.events.list()


# =============================================================================
# Access Keys
# =============================================================================


class TestAccessKeys:
    def test_list(self, client, mock_api):
        keys = client.access_keys.list()

        assert keys.results_length == 2
        assert [k.key for k in keys.results] == ["key1", "key2"]
        assert keys.results[0].permissions == Permissions(send=["event1"], receive=["event2"])
        assert "accessKey" not in mock_api.requests[0].query

    def test_list_with_filter(self, client, mock_api):
        keys = client.access_keys.list(ListParams(filters={"accessKey": "key2"}))

        assert [k.key for k in keys.results] == ["key2"]
        assert mock_api.requests[0].query["accessKey"] == ["key2"]

    def test_list_with_invalid_api_key(self, bad_key_client):
        with pytest.raises(APIError, match="Invalid API key") as exc_info:
            bad_key_client.access_keys.list()
        assert str(exc_info.value).startswith("failed to list access keys:")

    def test_create(self, client, mock_api):
        permissions = Permissions(send=["e1", "e2"], receive=["e3"])
        created = client.access_keys.create(permissions)

        assert created.key == "new-access-key-123"
        assert created.permissions == permissions
        # Server did not send a timestamp
        assert created.created_at is None

        request = mock_api.requests_to("POST", "/access-key")[0]
        assert request.body == {"permissions": {"send": ["e1", "e2"], "receive": ["e3"]}}

    def test_create_keeps_server_timestamp(self, client, mock_api):
        mock_api.respond(
            "POST", "/access-key", 200, {"accessKey": "k-1", "createdAt": "2024-05-01T12:00:00Z"}
        )
        created = client.access_keys.create(Permissions())
        assert created.created_at == "2024-05-01T12:00:00Z"

    def test_create_without_key_in_response(self, client, mock_api):
        mock_api.respond("POST", "/access-key", 200, {"id": 7})
        with pytest.raises(DecodeError, match="failed to create access key"):
            client.access_keys.create(Permissions(send=["e1"]))

    def test_get_permissions(self, client, mock_api):
        permissions = client.access_keys.get_permissions("test-key")

        assert permissions == Permissions(send=["event1"], receive=["event2"])
        assert mock_api.requests[0].path == "/access-key/permissions/test-key"

    def test_set_then_get_round_trip(self, client, mock_api):
        wanted = Permissions(send=["orders.created", "orders.created"], receive=["refunds"])
        assert client.access_keys.set_permissions("test-key", wanted) is None

        request = mock_api.requests_to("POST", "/access-key/permissions/test-key")[0]
        assert request.body == {"send": ["orders.created", "orders.created"], "receive": ["refunds"]}
        assert client.access_keys.get_permissions("test-key") == wanted

    def test_get_permissions_missing_field(self, client, mock_api):
        mock_api.respond("GET", "/access-key/permissions/test-key", 200, {"key": "test-key"})
        with pytest.raises(DecodeError):
            client.access_keys.get_permissions("test-key")

    @pytest.mark.parametrize(("key", "expected"), [("good-key", True), ("revoked-key", False)])
    def test_verify(self, client, key, expected):
        assert client.access_keys.verify(key) is expected


# =============================================================================
# Transport
# =============================================================================


class TestRealTransport:
    def test_retries_server_errors_then_fails(self, client, mock_api):
        mock_api.respond("GET", "/event", 503, "upstream unavailable")
        with pytest.raises(APIError) as exc_info:
            client.events.list()

        assert exc_info.value.status == 503
        assert "upstream unavailable" in exc_info.value.message
        assert len(mock_api.requests) == 4

    def test_connection_refused_is_transport_error(self, mock_api):
        url = mock_api.url
        mock_api.stop()
        client = EnSyncClient(ClientConfig(base_url=url, api_key=API_KEY, retry=FAST_RETRY, timeout=2.0))
        with pytest.raises(TransportError, match="failed to list events"):
            client.events.list()
