"""
Record and pending-operation data model for the offline contact directory.

Provides:
- Record: server-confirmed (or pending) contact as shown to the user
- PendingOperation: a queued create/update/delete intent
- Explicit serialize/deserialize helpers for the persisted partitions
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

# Prefix that distinguishes client-generated ids from server ids
PENDING_PREFIX = "pending_"

# Fields a user may change on a record
MUTABLE_FIELDS = ("name", "phone", "photo")

# Wire names of sortable record fields
SORTABLE_FIELDS = ("name", "phone", "createdAt", "updatedAt")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return (
        datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
            "+00:00", "Z"
        )
    )


def is_pending_id(record_id: str) -> bool:
    """Check whether an id was generated locally for an unsynced record."""
    return record_id.startswith(PENDING_PREFIX)


def clean_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Keep only the mutable fields of a contact payload."""
    return {key: data[key] for key in MUTABLE_FIELDS if key in data}


class OperationKind(str, Enum):
    """Kind of queued mutation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OperationStatus(str, Enum):
    """Reconciliation state of a queued mutation."""

    PENDING = "pending"
    SYNCING = "syncing"
    FAILED = "failed"


@dataclass
class Record:
    """
    Contact record as stored by the backend.

    Attributes:
        id: Server-assigned opaque id, or a ``pending_`` id for unsynced creates
        name: Display name
        phone: Phone number as entered
        photo: Photo reference (data URL text) or None
        created_at: ISO timestamp, server authoritative once committed
        updated_at: ISO timestamp, server authoritative once committed
        status: Pending status for records built from the queue, None otherwise
    """

    id: str
    name: str = ""
    phone: str = ""
    photo: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Record:
        """
        Create a Record from a GraphQL contact object.

        Example API response structure::

            {
                'id': '42',
                'name': 'Bob',
                'phone': '555-0100',
                'photo': None,
                'createdAt': '2024-06-15T10:30:00.000Z',
                'updatedAt': '2024-06-15T10:30:00.000Z'
            }
        """
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            phone=data.get("phone") or "",
            photo=data.get("photo"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            status=data.get("status"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire/persisted shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "photo": self.photo,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.status is not None:
            data["status"] = self.status
        return data

    def get_field(self, name: str) -> Any:
        """Look up a field by its wire name (``createdAt``) or attribute name."""
        attr = {"createdAt": "created_at", "updatedAt": "updated_at"}.get(name, name)
        return getattr(self, attr, None)

    def with_changes(self, payload: dict[str, Any], **extra: Any) -> Record:
        """Return a copy with payload fields applied over this record."""
        data = self.to_dict()
        data.update(clean_payload(payload))
        data.update(extra)
        return Record.from_api_response(data)

    @property
    def is_pending(self) -> bool:
        return is_pending_id(self.id)


@dataclass
class PendingOperation:
    """
    A create/update/delete intent that the server has not confirmed yet.

    ``revision`` is bumped every time the user edits the operation so the
    reconciliation engine can tell whether it changed while in flight.
    """

    local_id: str
    kind: OperationKind
    payload: dict[str, Any] = field(default_factory=dict)
    original_id: Optional[str] = None
    status: OperationStatus = OperationStatus.PENDING
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    attempts: int = 0
    last_error: Optional[str] = None
    revision: int = 0

    def target_id(self) -> str:
        """Id of the record this operation is displayed under."""
        return self.original_id if self.original_id is not None else self.local_id

    def touch(self) -> None:
        self.updated_at = utc_now_iso()
        self.revision += 1

    def to_record(self, base: Optional[Record] = None) -> Record:
        """
        Build the record shown for this operation.

        Args:
            base: Committed record the operation applies to, if known
        """
        if base is None:
            base = Record(
                id=self.target_id(),
                created_at=self.created_at,
                updated_at=self.updated_at,
            )
        return base.with_changes(
            self.payload, updatedAt=self.updated_at, status=self.status.value
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "localId": self.local_id,
            "kind": self.kind.value,
            "originalId": self.original_id,
            "payload": dict(self.payload),
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "attempts": self.attempts,
            "lastError": self.last_error,
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingOperation:
        """
        Restore an operation from its persisted shape.

        Raises:
            ValueError: If kind or status is unknown, or localId is missing
        """
        local_id = data.get("localId")
        if not local_id:
            raise ValueError("Pending operation is missing localId")
        kind = OperationKind(data.get("kind"))
        status = OperationStatus(data.get("status", OperationStatus.PENDING.value))
        # An operation persisted mid-flight never finished; retry it
        if status is OperationStatus.SYNCING:
            status = OperationStatus.PENDING
        return cls(
            local_id=local_id,
            kind=kind,
            payload=dict(data.get("payload") or {}),
            original_id=data.get("originalId"),
            status=status,
            created_at=data.get("createdAt") or utc_now_iso(),
            updated_at=data.get("updatedAt") or utc_now_iso(),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("lastError"),
            revision=int(data.get("revision", 0)),
        )


@dataclass
class PaginationState:
    """Pagination bookkeeping for the displayed list."""

    page: int = 1
    page_size: int = 10
    total_pages: int = 0
    has_more: bool = True


def serialize_operations(
    operations: OrderedDict[str, PendingOperation],
) -> list[dict[str, Any]]:
    """Turn the ordered queue container into a JSON-ready list."""
    return [op.to_dict() for op in operations.values()]


def deserialize_operations(
    data: list[dict[str, Any]],
) -> OrderedDict[str, PendingOperation]:
    """
    Rebuild the ordered queue container from its persisted list.

    Raises:
        ValueError: If an entry cannot be parsed
    """
    operations: OrderedDict[str, PendingOperation] = OrderedDict()
    for item in data:
        op = PendingOperation.from_dict(item)
        operations[op.local_id] = op
    return operations


def serialize_records(records: list[Record]) -> list[dict[str, Any]]:
    return [record.to_dict() for record in records]


def deserialize_records(data: list[dict[str, Any]]) -> list[Record]:
    return [Record.from_api_response(item) for item in data]
