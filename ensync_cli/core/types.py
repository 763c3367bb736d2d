"""
Core types for EnSync API requests and responses.

Each dataclass decodes from the API's camelCase JSON via `from_dict` and
renders back to a JSON-ready dict via `to_dict`. Shape mismatches raise
DecodeError.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ensync_cli.core.errors import DecodeError

# =============================================================================
# Decoding helpers
# =============================================================================


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodeError(f"expected {what} to be an object, got {type(value).__name__}")
    return value


def _string_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise DecodeError(f"expected {what} to be a list of strings")
    return list(value)


def _optional_str(value: Any, what: str) -> str | None:
    if value is not None and not isinstance(value, str):
        raise DecodeError(f"expected {what} to be a string")
    return value


def _results(data: dict[str, Any], what: str) -> tuple[int, list[Any]]:
    results = data.get("results")
    if results is None:
        results = []
    if not isinstance(results, list):
        raise DecodeError(f"expected {what} results to be a list")
    length = data.get("resultsLength", len(results))
    if isinstance(length, bool) or not isinstance(length, int):
        raise DecodeError(f"expected {what} resultsLength to be an integer")
    return length, results


# =============================================================================
# Pagination
# =============================================================================


ORDER_CHOICES = ("ASC", "DESC", "asc", "desc")
ORDER_BY_FIELDS = ("name", "createdAt")


@dataclass
class ListParams:
    """Pagination, sort and filter options for list endpoints."""

    page_index: int = 0
    limit: int = 10
    order: str = "DESC"
    order_by: str = "createdAt"
    filters: dict[str, str] = field(default_factory=dict)

    def to_query(self, filter_keys: Iterable[str] = ()) -> dict[str, str]:
        """
        Encode as query parameters.

        Only the filters named in `filter_keys` are sent, and only when
        they have a non-empty value.
        """
        query = {
            "pageIndex": str(self.page_index),
            "limit": str(self.limit),
            "order": self.order,
            "orderBy": self.order_by,
        }
        for key in filter_keys:
            value = self.filters.get(key)
            if value:
                query[key] = value
        return query


# =============================================================================
# Event Types
# =============================================================================


@dataclass
class Event:
    """An event definition: a name plus a flat string payload schema."""

    name: str
    payload: dict[str, str] = field(default_factory=dict)
    # Numeric on some server versions, string on others
    id: int | str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        """Create from API response dict."""
        data = _mapping(data, "event")
        name = data.get("name")
        if not isinstance(name, str):
            raise DecodeError("expected event name to be a string")

        payload = data.get("payload")
        payload = {} if payload is None else _mapping(payload, "event payload")
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in payload.items()):
            raise DecodeError("expected event payload to map strings to strings")

        event_id = data.get("id")
        if isinstance(event_id, bool) or not isinstance(event_id, (int, str, type(None))):
            raise DecodeError("expected event id to be a number or string")

        return cls(
            name=name,
            payload=dict(payload),
            id=event_id,
            created_at=_optional_str(data.get("createdAt"), "event createdAt"),
            updated_at=_optional_str(data.get("updatedAt"), "event updatedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {}
        if self.id is not None:
            result["id"] = self.id
        result["name"] = self.name
        result["payload"] = self.payload
        if self.created_at is not None:
            result["createdAt"] = self.created_at
        if self.updated_at is not None:
            result["updatedAt"] = self.updated_at
        return result


@dataclass
class EventList:
    """One page of events."""

    results_length: int
    results: list[Event] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "EventList":
        """Create from API response dict."""
        length, results = _results(_mapping(data, "event list"), "event list")
        return cls(results_length=length, results=[Event.from_dict(item) for item in results])

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "resultsLength": self.results_length,
            "results": [e.to_dict() for e in self.results],
        }


# =============================================================================
# Access Key Types
# =============================================================================


@dataclass
class Permissions:
    """Event names an access key may publish (send) and subscribe to (receive)."""

    send: list[str] = field(default_factory=list)
    receive: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Permissions":
        """Create from API response dict."""
        data = _mapping(data, "permissions")
        return cls(
            send=_string_list(data.get("send"), "permissions.send"),
            receive=_string_list(data.get("receive"), "permissions.receive"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        return {
            "send": self.send,
            "receive": self.receive,
        }


@dataclass
class AccessKey:
    """An access key and the permissions attached to it."""

    key: str
    permissions: Permissions | None = None
    # Not every server version returns a timestamp
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "AccessKey":
        """Create from API response dict."""
        data = _mapping(data, "access key")
        # List endpoint uses 'key', create endpoint uses 'accessKey'
        key = data.get("key") or data.get("accessKey")
        if not isinstance(key, str) or not key:
            raise DecodeError("expected access key to be a non-empty string")

        permissions = data.get("permissions")
        return cls(
            key=key,
            permissions=Permissions.from_dict(permissions) if permissions is not None else None,
            created_at=_optional_str(data.get("createdAt"), "access key createdAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"key": self.key}
        if self.permissions is not None:
            result["permissions"] = self.permissions.to_dict()
        if self.created_at is not None:
            result["createdAt"] = self.created_at
        return result


@dataclass
class AccessKeyList:
    """One page of access keys."""

    results_length: int
    results: list[AccessKey] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "AccessKeyList":
        """Create from API response dict."""
        length, results = _results(_mapping(data, "access key list"), "access key list")
        return cls(results_length=length, results=[AccessKey.from_dict(item) for item in results])

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "resultsLength": self.results_length,
            "results": [k.to_dict() for k in self.results],
        }
