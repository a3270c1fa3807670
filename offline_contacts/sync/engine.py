"""
Reconciliation engine replaying queued operations against the backend.

Orchestrates one reconciliation pass:
- splits the queue into fixed-size batches
- dispatches each batch concurrently, batches strictly in sequence
- keeps failed operations for the next pass, drops ones whose target is gone
- persists the reduced queue and refreshes committed state afterwards
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from offline_contacts.api.gateway import (
    GatewayError,
    NotFoundError,
    RemoteGateway,
    TransientNetworkError,
)
from offline_contacts.sync.connectivity import ConnectivityMonitor
from offline_contacts.sync.queue import PendingOperationQueue
from offline_contacts.sync.record import (
    OperationKind,
    OperationStatus,
    PendingOperation,
    Record,
)

# Operations dispatched concurrently per batch
DEFAULT_BATCH_SIZE = 5

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[Any]]
DispatchResult = Union[Record, dict[str, Any]]


class OfflineError(Exception):
    """Raised when an operation needs the backend but the client is offline."""

    pass


class PendingOperationNotFoundError(KeyError):
    """Raised when a local id does not name a queued operation."""

    def __str__(self) -> str:
        return f"Pending operation not found: {self.args[0]}"


@dataclass
class ReconciliationResult:
    """
    Outcome of one reconciliation pass.

    Tracks counts per outcome and the last error per failed operation.
    """

    attempted: int = 0
    synced: int = 0
    failed: int = 0
    dropped: int = 0
    aborted: bool = False
    skipped: bool = False
    errors: dict[str, str] = field(default_factory=dict)
    records: list[Record] = field(default_factory=list)

    def summary(self) -> str:
        """Human-readable one-line summary."""
        if self.skipped:
            return "Nothing to sync"
        parts = [
            f"{self.synced} synced",
            f"{self.failed} failed",
        ]
        if self.dropped:
            parts.append(f"{self.dropped} dropped")
        text = f"Sync attempted {self.attempted}: " + ", ".join(parts)
        if self.aborted:
            text += " (stopped early: connection lost)"
        return text


class ReconciliationEngine:
    """
    Drains the pending queue against the remote gateway.

    Attributes:
        gateway: Remote gateway receiving the operations
        queue: Pending operation queue being drained
        monitor: Connectivity monitor consulted before each batch
        batch_size: Maximum concurrent requests per batch
        running: True while a pass is in progress

    Usage:
        engine = ReconciliationEngine(gateway, queue, monitor, refresh=store.reset_and_fetch)
        result = await engine.sync()
        print(result.summary())
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        queue: PendingOperationQueue,
        monitor: ConnectivityMonitor,
        refresh: Optional[RefreshCallback] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.gateway = gateway
        self.queue = queue
        self.monitor = monitor
        self.refresh = refresh
        self.batch_size = batch_size
        self.running = False

    def __repr__(self) -> str:
        return (
            f"ReconciliationEngine(pending={len(self.queue)}, "
            f"batch_size={self.batch_size}, running={self.running})"
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _send(self, op: PendingOperation) -> DispatchResult:
        """Issue the gateway call that commits one operation."""
        if op.kind is OperationKind.DELETE:
            if not op.original_id:
                # Its create never reached the server; nothing to remove
                return {"id": op.local_id}
            return await self.gateway.remove(op.original_id)
        if op.kind is OperationKind.UPDATE and op.original_id:
            return await self.gateway.update(op.original_id, op.payload)

        revision = op.revision
        payload = dict(op.payload)
        record = await self.gateway.create(payload)
        photo = payload.get("photo")
        if photo:
            try:
                record = await self.gateway.update_media(record.id, photo)
            except GatewayError:
                # The contact exists now; aim whatever is left at its server id
                op.original_id = record.id
                if op.kind is OperationKind.DELETE:
                    raise
                op.kind = OperationKind.UPDATE
                if op.revision == revision:
                    op.payload = {"photo": photo}
                else:
                    # Edited in flight; the merged payload holds the newest values
                    op.payload.setdefault("photo", photo)
                raise
        return record

    def _settle_success(self, op: PendingOperation, revision: int, result: DispatchResult) -> bool:
        """
        Apply a successful dispatch to the queue.

        Returns:
            True when the operation left the queue
        """
        if op.revision == revision or op.local_id not in self.queue:
            self.queue.remove(op.local_id)
            return True

        # Edited while in flight: keep it, now aimed at the committed record
        if op.original_id is None and isinstance(result, Record):
            op.original_id = result.id
            if op.kind is OperationKind.CREATE:
                op.kind = OperationKind.UPDATE
        op.status = OperationStatus.PENDING
        logger.debug(f"{op.local_id} changed while syncing, kept for next pass")
        return True

    def _settle_failure(self, op: PendingOperation, error: GatewayError) -> None:
        op.last_error = str(error)
        if op.kind is OperationKind.DELETE and op.original_id is None:
            # A create that was deleted mid-flight and never reached the server
            self.queue.remove(op.local_id)
            return
        op.status = OperationStatus.FAILED

    async def _dispatch(self, op: PendingOperation, result: ReconciliationResult) -> None:
        """Dispatch one operation and record its outcome; never raises GatewayError."""
        revision = op.revision
        op.status = OperationStatus.SYNCING
        op.attempts += 1
        try:
            outcome = await self._send(op)
        except NotFoundError as e:
            logger.warning(
                f"Dropping {op.kind.value} {op.local_id}: "
                f"contact {op.original_id} no longer exists ({e})"
            )
            self.queue.remove(op.local_id)
            result.dropped += 1
            return
        except TransientNetworkError as e:
            logger.debug(f"Sync of {op.local_id} failed, will retry: {e}")
            self.monitor.mark_unreachable()
            self._settle_failure(op, e)
            result.failed += 1
            result.errors[op.local_id] = str(e)
            return
        except GatewayError as e:
            logger.error(f"Failed to sync {op.kind.value} {op.local_id}: {e}")
            self._settle_failure(op, e)
            result.failed += 1
            result.errors[op.local_id] = str(e)
            return

        self._settle_success(op, revision, outcome)
        result.synced += 1
        if isinstance(outcome, Record):
            result.records.append(outcome)

    # =========================================================================
    # Passes
    # =========================================================================

    async def sync(self) -> ReconciliationResult:
        """
        Run one reconciliation pass.

        No-op when offline, when the queue is empty, or when a pass is
        already running. Never raises for per-operation failures.
        """
        result = ReconciliationResult()
        if self.running or self.monitor.is_offline or not len(self.queue):
            result.skipped = True
            return result

        self.running = True
        try:
            operations = self.queue.operations()
            logger.info(f"Syncing {len(operations)} pending operations")

            for start in range(0, len(operations), self.batch_size):
                if self.monitor.is_offline:
                    logger.warning("Connection lost, leaving remaining operations queued")
                    result.aborted = True
                    break
                batch = [
                    op for op in operations[start : start + self.batch_size]
                    if op.local_id in self.queue
                ]
                result.attempted += len(batch)
                await asyncio.gather(*(self._dispatch(op, result) for op in batch))

            self.queue.persist()
        finally:
            self.running = False

        logger.info(result.summary())
        if self.refresh is not None:
            await self.refresh()
        return result

    async def resend(self, local_id: str) -> DispatchResult:
        """
        Dispatch one queued operation immediately.

        Raises:
            OfflineError: If the client is offline
            PendingOperationNotFoundError: If local_id is not queued
            GatewayError: If the backend call fails (operation kept as failed,
                          or dropped on NotFoundError)
        """
        if self.monitor.is_offline:
            raise OfflineError("No internet connection available")

        op = self.queue.get(local_id)
        if op is None:
            raise PendingOperationNotFoundError(local_id)

        revision = op.revision
        op.status = OperationStatus.SYNCING
        op.attempts += 1
        try:
            outcome = await self._send(op)
        except NotFoundError:
            logger.warning(f"Dropping {op.local_id}: contact {op.original_id} is gone")
            self.queue.remove(op.local_id)
            self.queue.persist()
            raise
        except GatewayError as e:
            if isinstance(e, TransientNetworkError):
                self.monitor.mark_unreachable()
            self._settle_failure(op, e)
            self.queue.persist()
            raise

        self._settle_success(op, revision, outcome)
        self.queue.persist()
        if self.refresh is not None:
            await self.refresh()
        return outcome
