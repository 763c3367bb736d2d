"""
EnSync SDK - High-level client with typed request builders.

This layer maps each (resource, operation) pair onto a single round trip
through the core APIClient and decodes the response into core types.
"""

from typing import Any
from urllib.parse import quote

from ensync_cli.core.cancel import CancelToken
from ensync_cli.core.client import APIClient, ClientConfig
from ensync_cli.core.errors import DecodeError, ValidationError, operation
from ensync_cli.core.transport import Transport
from ensync_cli.core.types import (
    AccessKey,
    AccessKeyList,
    Event,
    EventList,
    ListParams,
    Permissions,
)


def _segment(value: Any) -> str:
    """Percent-encode a single path segment."""
    return quote(str(value), safe="")


class EnSyncClient:
    """
    High-level EnSync API client.

    Example:
        client = EnSyncClient(ClientConfig(api_key="...", base_url="https://..."))

        events = client.events.list(ListParams(limit=20))
        key = client.access_keys.create(Permissions(send=["orders"], receive=[]))
        client.access_keys.set_permissions(key.key, Permissions(send=["orders"], receive=["refunds"]))

    """

    def __init__(self, config: ClientConfig, transport: Transport | None = None):
        """
        Initialize the EnSync client.

        Args:
            config: Connection settings (base URL, API key, timeout, retry, rate limit, logger)
            transport: Optional HTTP transport override

        Raises:
            ConfigError: If the API key or base URL is missing

        """
        self._client = APIClient(config, transport=transport)

        # Sub-clients for different resources
        self.events = EventOperations(self._client)
        self.access_keys = AccessKeyOperations(self._client)


# =============================================================================
# Event Operations
# =============================================================================


class EventOperations:
    """Operations for event definitions."""

    def __init__(self, client: APIClient):
        self._client = client

    def list(self, params: ListParams | None = None, token: CancelToken | None = None) -> EventList:
        """
        List events.

        Args:
            params: Pagination and sort options
            token: Optional cancellation token

        Returns:
            EventList for the requested page

        """
        params = params or ListParams()
        with operation("failed to list events"):
            result = self._client.get("/event", params.to_query(), token=token)
            return EventList.from_dict(result)

    def get(self, name: str, token: CancelToken | None = None) -> Event:
        """Get an event by name."""
        with operation(f"failed to get event '{name}'"):
            result = self._client.get(f"/event/{_segment(name)}", token=token)
            return Event.from_dict(result)

    def create(self, event: Event, token: CancelToken | None = None) -> None:
        """
        Create an event definition.

        Args:
            event: Event to create; only name and payload are sent
            token: Optional cancellation token

        """
        with operation("failed to create event"):
            self._client.post("/event", {"name": event.name, "payload": event.payload}, token=token)

    def update(self, event: Event, token: CancelToken | None = None) -> None:
        """
        Update an event definition, addressed by its id.

        Raises:
            ValidationError: If the event has no id

        """
        with operation("failed to update event"):
            if event.id is None or event.id == "":
                raise ValidationError("event id is required for update")
            self._client.put(
                f"/event/{_segment(event.id)}",
                {"name": event.name, "payload": event.payload},
                token=token,
            )


# =============================================================================
# Access Key Operations
# =============================================================================


class AccessKeyOperations:
    """Operations for access keys and their permissions."""

    LIST_FILTERS = ("accessKey",)

    def __init__(self, client: APIClient):
        self._client = client

    def list(self, params: ListParams | None = None, token: CancelToken | None = None) -> AccessKeyList:
        """
        List access keys.

        Args:
            params: Pagination and sort options; `filters["accessKey"]` narrows to one key
            token: Optional cancellation token

        Returns:
            AccessKeyList for the requested page

        """
        params = params or ListParams()
        with operation("failed to list access keys"):
            result = self._client.get("/access-key", params.to_query(self.LIST_FILTERS), token=token)
            return AccessKeyList.from_dict(result)

    def create(self, permissions: Permissions, token: CancelToken | None = None) -> AccessKey:
        """
        Create an access key with the given permissions.

        The server generates the key. The returned AccessKey carries the
        requested permissions and a creation time only if the server sent one.

        Args:
            permissions: Desired send/receive permissions
            token: Optional cancellation token

        Returns:
            The newly created AccessKey

        """
        with operation("failed to create access key"):
            result = self._client.post("/access-key", {"permissions": permissions.to_dict()}, token=token)
            if not isinstance(result, dict) or not isinstance(result.get("accessKey"), str):
                raise DecodeError("expected response to contain an 'accessKey' string")
            created_at = result.get("createdAt")
            return AccessKey(
                key=result["accessKey"],
                permissions=permissions,
                created_at=created_at if isinstance(created_at, str) else None,
            )

    def verify(self, key: str, token: CancelToken | None = None) -> bool:
        """Check whether an access key is valid."""
        with operation("failed to verify access key"):
            result = self._client.get(f"/access/verify/{_segment(key)}", token=token)
            if not isinstance(result, dict) or not isinstance(result.get("status"), bool):
                raise DecodeError("expected response to contain a boolean 'status'")
            return result["status"]

    def get_permissions(self, key: str, token: CancelToken | None = None) -> Permissions:
        """
        Get the permissions attached to an access key.

        Args:
            key: The access key
            token: Optional cancellation token

        Returns:
            The key's Permissions

        """
        with operation("failed to get access key permissions"):
            result = self._client.get(f"/access-key/permissions/{_segment(key)}", token=token)
            if not isinstance(result, dict) or result.get("permissions") is None:
                raise DecodeError("expected response to contain 'permissions'")
            return Permissions.from_dict(result["permissions"])

    def set_permissions(
        self,
        key: str,
        permissions: Permissions,
        token: CancelToken | None = None,
    ) -> None:
        """Replace the permissions attached to an access key."""
        with operation("failed to set access key permissions"):
            self._client.post(f"/access-key/permissions/{_segment(key)}", permissions.to_dict(), token=token)


