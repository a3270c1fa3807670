"""
Pending operation queue with collapsing rules.

Mutations made while offline (or that failed with a transient network
error) are recorded here until the server confirms them. The queue keeps
at most one operation per committed record:

- editing an unsynced create changes that create in place
- a second update to the same record merges into the first
- deleting an unsynced create removes it without any network call
- a delete supersedes a queued update for the same record
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Any, Optional

from offline_contacts.storage.session import LocalPersistenceError, SessionStorage
from offline_contacts.sync.record import (
    PENDING_PREFIX,
    OperationKind,
    OperationStatus,
    PendingOperation,
    clean_payload,
    deserialize_operations,
    serialize_operations,
)

logger = logging.getLogger(__name__)


class QueueError(Exception):
    """Raised when a mutation cannot be queued."""

    pass


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class PendingOperationQueue:
    """
    Ordered, persisted queue of PendingOperation entries keyed by local id.

    Attributes:
        storage: Session storage the queue is written to after every change

    Usage:
        queue = PendingOperationQueue(storage)
        queue.load()

        op = queue.enqueue_create({"name": "Ana", "phone": "555"})
        queue.enqueue_update(op.local_id, {"phone": "556"})  # same entry
        queue.enqueue_delete(op.local_id)  # entry removed
    """

    def __init__(
        self,
        storage: Optional[SessionStorage] = None,
        clock_ms: Callable[[], int] = _epoch_ms,
    ):
        self.storage = storage
        self.clock_ms = clock_ms
        self._operations: OrderedDict[str, PendingOperation] = OrderedDict()

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Replace the in-memory queue with the persisted one."""
        if self.storage is None:
            return
        try:
            data = self.storage.load_pending_operations()
        except LocalPersistenceError as e:
            logger.warning(f"Could not load pending operations: {e}")
            return
        try:
            self._operations = deserialize_operations(data)
        except ValueError as e:
            logger.error(f"Discarding unreadable pending operations: {e}")
            self._operations = OrderedDict()
        logger.debug(f"Loaded {len(self._operations)} pending operations")

    def persist(self) -> None:
        """Write the queue to session storage; failures only warn."""
        if self.storage is None:
            return
        try:
            self.storage.save_pending_operations(serialize_operations(self._operations))
        except LocalPersistenceError as e:
            logger.warning(f"Pending operations kept in memory only: {e}")

    # =========================================================================
    # Lookup
    # =========================================================================

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[PendingOperation]:
        return iter(list(self._operations.values()))

    def __contains__(self, local_id: object) -> bool:
        return local_id in self._operations

    def operations(self) -> list[PendingOperation]:
        """Snapshot of the queue in order."""
        return list(self._operations.values())

    def get(self, local_id: str) -> Optional[PendingOperation]:
        return self._operations.get(local_id)

    def find_by_target(self, target_id: str) -> Optional[PendingOperation]:
        """
        Find the operation a record id refers to.

        Matches a local id (unsynced create) first, then an original id.
        """
        op = self._operations.get(target_id)
        if op is not None:
            return op
        for op in self._operations.values():
            if op.original_id == target_id:
                return op
        return None

    def _new_local_id(self) -> str:
        timestamp = self.clock_ms()
        while f"{PENDING_PREFIX}{timestamp}" in self._operations:
            timestamp += 1
        return f"{PENDING_PREFIX}{timestamp}"

    # =========================================================================
    # Mutations
    # =========================================================================

    def enqueue_create(self, payload: dict[str, Any]) -> PendingOperation:
        """Queue a new record; always succeeds."""
        op = PendingOperation(
            local_id=self._new_local_id(),
            kind=OperationKind.CREATE,
            payload=clean_payload(payload),
        )
        self._operations[op.local_id] = op
        logger.debug(f"Queued create {op.local_id}")
        self.persist()
        return op

    def enqueue_update(self, target_id: str, payload: dict[str, Any]) -> PendingOperation:
        """
        Queue an update, collapsing into any operation already queued for it.

        Raises:
            QueueError: If the record already has a queued delete
        """
        changes = clean_payload(payload)
        existing = self.find_by_target(target_id)

        if existing is not None and existing.kind is OperationKind.DELETE:
            raise QueueError(f"Contact {target_id} is pending deletion")

        if existing is not None:
            existing.payload.update(changes)
            existing.touch()
            if existing.status is OperationStatus.FAILED:
                existing.status = OperationStatus.PENDING
            logger.debug(f"Merged update into {existing.kind.value} {existing.local_id}")
            self.persist()
            return existing

        op = PendingOperation(
            local_id=self._new_local_id(),
            kind=OperationKind.UPDATE,
            payload=changes,
            original_id=target_id,
        )
        self._operations[op.local_id] = op
        logger.debug(f"Queued update {op.local_id} for {target_id}")
        self.persist()
        return op

    def enqueue_delete(self, target_id: str) -> Optional[PendingOperation]:
        """
        Queue a delete, collapsing over any operation already queued for it.

        Returns:
            The delete operation, or None when an unsynced create was dropped
        """
        existing = self.find_by_target(target_id)

        if existing is not None and existing.kind is OperationKind.CREATE:
            if existing.status is OperationStatus.SYNCING:
                # The create may land on the server; delete it once it has an id
                existing.kind = OperationKind.DELETE
                existing.payload = {}
                existing.touch()
                self.persist()
                return existing
            del self._operations[existing.local_id]
            logger.debug(f"Dropped unsynced create {existing.local_id}")
            self.persist()
            return None

        if existing is not None and existing.kind is OperationKind.DELETE:
            return existing

        if existing is not None:
            existing.kind = OperationKind.DELETE
            existing.payload = {}
            existing.touch()
            if existing.status is OperationStatus.FAILED:
                existing.status = OperationStatus.PENDING
            logger.debug(f"Update {existing.local_id} superseded by delete")
            self.persist()
            return existing

        op = PendingOperation(
            local_id=self._new_local_id(),
            kind=OperationKind.DELETE,
            original_id=target_id,
        )
        self._operations[op.local_id] = op
        logger.debug(f"Queued delete {op.local_id} for {target_id}")
        self.persist()
        return op

    def remove(self, local_id: str) -> Optional[PendingOperation]:
        """Remove an operation after it was confirmed (or dropped)."""
        op = self._operations.pop(local_id, None)
        if op is not None:
            self.persist()
        return op

    def clear(self) -> None:
        self._operations.clear()
        self.persist()
