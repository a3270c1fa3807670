"""
Contact store: the context object behind every read and mutation.

Wires together the remote gateway, session storage, pending queue, query
cache, connectivity monitor and reconciliation engine, and keeps the
displayed list equal to the projection of pending plus committed records.

Mutations go to the backend when online. When offline, or when the call
fails with a transient network error, they are queued instead and the
caller receives the pending record; only rejections by the backend raise.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from offline_contacts.api.gateway import (
    ContactPage,
    GatewayError,
    RemoteGateway,
    TransientNetworkError,
)
from offline_contacts.storage.session import LocalPersistenceError, SessionStorage
from offline_contacts.sync.cache import DEFAULT_CACHE_DURATION, QueryCache
from offline_contacts.sync.connectivity import (
    DEFAULT_PROBE_TIMEOUT,
    ConnectivityMonitor,
)
from offline_contacts.sync.engine import (
    DEFAULT_BATCH_SIZE,
    DispatchResult,
    OfflineError,
    ReconciliationEngine,
    ReconciliationResult,
)
from offline_contacts.sync.photo import encode_photo
from offline_contacts.sync.projector import (
    SORT_ASC,
    SORT_ORDERS,
    merge_view,
    paginate,
    project,
)
from offline_contacts.sync.queue import PendingOperationQueue, QueueError
from offline_contacts.sync.record import (
    SORTABLE_FIELDS,
    PaginationState,
    PendingOperation,
    Record,
    clean_payload,
    deserialize_records,
    is_pending_id,
    serialize_records,
)
from offline_contacts.utils.debounce import DEFAULT_DEBOUNCE_DELAY, Debouncer

# Records per page
DEFAULT_PAGE_SIZE = 10

logger = logging.getLogger(__name__)


class ContactStoreError(Exception):
    """Base class for store-level failures."""

    pass


class RecordNotFoundError(ContactStoreError):
    """Raised when a mutation targets a contact the store does not know."""

    pass


def _unique_by_id(records: list[Record]) -> list[Record]:
    seen: set[str] = set()
    unique: list[Record] = []
    for record in records:
        if record.id not in seen:
            seen.add(record.id)
            unique.append(record)
    return unique


class ContactStore:
    """
    Offline-first contact directory state.

    Attributes:
        contacts: Displayed records for the pages loaded so far
        committed: Last-known-good records confirmed by the backend
        current_page: Last page requested
        page_size: Records per page
        total_pages: Pages reported by the backend (or computed offline)
        has_more: Whether another page can be loaded
        loading: Guard preventing concurrent fetches
        error: Last user-facing error message, or None
        search: Current search term
        sort_field: Current sort field (wire name)
        sort_order: "asc" or "desc"

    Usage:
        storage = SessionStorage(":memory:")
        storage.initialize()
        store = ContactStore(RemoteGateway(url), storage)

        await store.fetch()
        await store.add_contact({"name": "Ana", "phone": "555"})
        await store.sync()
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        storage: SessionStorage,
        page_size: int = DEFAULT_PAGE_SIZE,
        cache_duration: float = DEFAULT_CACHE_DURATION,
        batch_size: int = DEFAULT_BATCH_SIZE,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        transport_online: bool = True,
        cache: Optional[QueryCache] = None,
        queue: Optional[PendingOperationQueue] = None,
    ):
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self.gateway = gateway
        self.storage = storage
        self.cache = cache if cache is not None else QueryCache(cache_duration)
        self.queue = queue if queue is not None else PendingOperationQueue(storage)
        self.monitor = ConnectivityMonitor(
            gateway, probe_timeout=probe_timeout, transport_online=transport_online
        )
        self.engine = ReconciliationEngine(
            gateway,
            self.queue,
            self.monitor,
            refresh=self.reset_and_fetch,
            batch_size=batch_size,
        )
        self.monitor.add_reconnect_listener(self.sync)

        self.contacts: list[Record] = []
        self.committed: list[Record] = []
        self.current_page = 1
        self.page_size = page_size
        self.total_pages = 0
        self.has_more = True
        self.loading = False
        self.loading_more = False
        self.error: Optional[str] = None

        self.search = ""
        self.sort_field = "name"
        self.sort_order = SORT_ASC

        self._search_debouncer = Debouncer(self.apply_search, debounce_delay)
        self._sort_debouncer = Debouncer(self.apply_sort, debounce_delay)

        self._load_session()

    def __repr__(self) -> str:
        return (
            f"ContactStore(contacts={len(self.contacts)}, "
            f"pending={len(self.queue)}, offline={self.is_offline})"
        )

    # =========================================================================
    # Session state
    # =========================================================================

    def _load_session(self) -> None:
        self.queue.load()
        try:
            self.committed = deserialize_records(self.storage.load_last_known_records())
            preferences = self.storage.load_query_preferences()
        except LocalPersistenceError as e:
            logger.warning(f"Starting without saved session state: {e}")
            return

        sort_field = preferences.get("sortField", self.sort_field)
        sort_order = preferences.get("sortOrder", self.sort_order)
        if sort_field in SORTABLE_FIELDS:
            self.sort_field = sort_field
        if sort_order in SORT_ORDERS:
            self.sort_order = sort_order
        self.search = str(preferences.get("searchTerm", self.search) or "")

    def _set_committed(self, records: list[Record]) -> None:
        self.committed = records
        try:
            self.storage.save_last_known_records(serialize_records(records))
        except LocalPersistenceError as e:
            logger.warning(f"Committed records kept in memory only: {e}")

    def _save_preferences(self) -> None:
        try:
            self.storage.save_query_preferences(
                {
                    "sortField": self.sort_field,
                    "sortOrder": self.sort_order,
                    "searchTerm": self.search,
                }
            )
        except LocalPersistenceError as e:
            logger.warning(f"Query preferences kept in memory only: {e}")

    def _find_committed(self, record_id: str) -> Optional[Record]:
        for record in self.committed:
            if record.id == record_id:
                return record
        return None

    def _upsert_committed(self, record: Record) -> None:
        records = [r if r.id != record.id else record for r in self.committed]
        if self._find_committed(record.id) is None:
            records.append(record)
        self._set_committed(records)

    def _drop_committed(self, record_id: str) -> None:
        self._set_committed([r for r in self.committed if r.id != record_id])

    # =========================================================================
    # Views
    # =========================================================================

    @property
    def is_offline(self) -> bool:
        return self.monitor.is_offline

    @property
    def pending_operations(self) -> list[PendingOperation]:
        return self.queue.operations()

    @property
    def visible_contacts(self) -> list[Record]:
        """Full projected view of pending plus committed records."""
        return project(
            merge_view(self.queue.operations(), self.committed),
            self.sort_field,
            self.sort_order,
            self.search,
        )

    @property
    def pagination(self) -> PaginationState:
        return PaginationState(
            page=self.current_page,
            page_size=self.page_size,
            total_pages=self.total_pages,
            has_more=self.has_more,
        )

    def _refresh_view(self) -> None:
        self.contacts = self.visible_contacts

    def _show_page(self, combined: list[Record], load_more: bool, first_only: bool) -> None:
        page_records, _, _ = paginate(combined, self.current_page, self.page_size)
        if load_more:
            self.contacts = _unique_by_id(self.contacts + page_records)
        elif first_only:
            self.contacts = combined[: self.page_size]
        else:
            self.contacts = combined[: self.current_page * self.page_size]

    def _apply_local(self, load_more: bool) -> None:
        """Compute the view from the committed snapshot and the queue only."""
        combined = self.visible_contacts
        _, self.total_pages, self.has_more = paginate(
            combined, self.current_page, self.page_size
        )
        self._show_page(combined, load_more, first_only=False)

    def _apply_page(self, page: ContactPage, load_more: bool) -> None:
        if load_more:
            self._set_committed(_unique_by_id(self.committed + page.records))
        else:
            self._set_committed(list(page.records))

        self._show_page(self.visible_contacts, load_more, first_only=True)
        self.total_pages = page.pages
        self.has_more = self.current_page < page.pages

    # =========================================================================
    # Fetching
    # =========================================================================

    async def fetch(self, load_more: bool = False) -> None:
        """
        Load the current page, from cache or backend, or locally when offline.

        Never raises for network unavailability; backend rejections are
        stored in ``error``.
        """
        if self.loading:
            return
        self.loading = True
        self.error = None
        reconnected = False

        try:
            was_offline = self.monitor.is_offline
            online = await self.monitor.refresh(notify=False)
            reconnected = was_offline and online

            if not online:
                self._apply_local(load_more)
            else:
                await self._fetch_online(load_more)
        except GatewayError as e:
            logger.error(f"Fetch error: {e}")
            self.error = str(e)
        finally:
            self.loading = False

        if reconnected and len(self.queue):
            await self.sync()

    async def _fetch_online(self, load_more: bool) -> None:
        key = QueryCache.key(
            self.current_page, self.page_size, self.sort_field, self.sort_order, self.search
        )
        page = self.cache.get(key)
        if page is not None:
            logger.debug(f"Cache hit for {key}")
            self._apply_page(page, load_more)
            return

        try:
            page = await self.gateway.list_contacts(
                page=self.current_page,
                limit=self.page_size,
                sort_by=self.sort_field,
                sort_order=self.sort_order,
                search=self.search,
            )
        except TransientNetworkError as e:
            logger.warning(f"Network error, showing saved contacts: {e}")
            self.monitor.mark_unreachable()
            self._apply_local(load_more)
            return

        self.cache.set(key, page)
        self._apply_page(page, load_more)

    async def load_more(self) -> None:
        """Append the next page to the displayed list."""
        if self.loading_more or not self.has_more:
            return

        self.loading_more = True
        previous_count = len(self.contacts)
        self.current_page += 1
        try:
            await self.fetch(load_more=True)
            if self.error:
                self.current_page -= 1
            elif len(self.contacts) == previous_count:
                self.has_more = False
        finally:
            self.loading_more = False

    async def reset_and_fetch(self) -> None:
        """Start over from page one with an empty cache."""
        self.current_page = 1
        self.has_more = True
        self.cache.clear()
        await self.fetch()

    async def get_contact(self, record_id: str) -> Record:
        """
        Look a contact up locally, then in the cache, then on the backend.

        Raises:
            OfflineError: If the contact is unknown locally and the client is offline
            GatewayError: If the backend lookup fails
        """
        for record in self.contacts + self.visible_contacts:
            if record.id == record_id:
                return record

        key = QueryCache.record_key(record_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if self.is_offline:
            raise OfflineError(f"Contact {record_id} is not available offline")

        try:
            record = await self.gateway.get_one(record_id)
        except GatewayError as e:
            self.error = str(e)
            raise

        self.cache.set(key, record)
        return record

    # =========================================================================
    # Query parameters
    # =========================================================================

    async def apply_search(self, value: str) -> None:
        """Apply a search term immediately and reload from page one."""
        self.search = value or ""
        self._save_preferences()
        self.current_page = 1
        await self.fetch()

    async def apply_sort(self, field: str, order: str = SORT_ASC) -> None:
        """
        Apply a sort immediately and reload from page one.

        Raises:
            ValueError: If field or order is not supported
        """
        if field not in SORTABLE_FIELDS:
            raise ValueError(
                f"Invalid sort field '{field}'. Must be one of: {', '.join(SORTABLE_FIELDS)}"
            )
        if order not in SORT_ORDERS:
            raise ValueError(
                f"Invalid sort order '{order}'. Must be one of: {', '.join(SORT_ORDERS)}"
            )
        self.sort_field = field
        self.sort_order = order
        self._save_preferences()
        self.current_page = 1
        await self.fetch()

    def set_search(self, value: str) -> None:
        """Debounced apply_search; must be called inside the event loop."""
        self._search_debouncer(value)

    def set_sort(self, field: str, order: str = SORT_ASC) -> None:
        """Debounced apply_sort; must be called inside the event loop."""
        self._sort_debouncer(field, order)

    async def flush_pending_queries(self) -> None:
        """Apply any waiting search/sort change now."""
        await self._search_debouncer.flush()
        await self._sort_debouncer.flush()

    def cancel_pending_queries(self) -> None:
        self._search_debouncer.cancel()
        self._sort_debouncer.cancel()

    # =========================================================================
    # Mutations
    # =========================================================================

    def _queue_create(self, payload: dict[str, Any]) -> Record:
        op = self.queue.enqueue_create(payload)
        self.error = None
        self._refresh_view()
        return op.to_record()

    def _queue_update(self, record_id: str, payload: dict[str, Any]) -> Record:
        op = self.queue.find_by_target(record_id)
        if op is None and self._find_committed(record_id) is None:
            raise RecordNotFoundError(f"Contact not found: {record_id}")
        try:
            op = self.queue.enqueue_update(record_id, payload)
        except QueueError as e:
            raise RecordNotFoundError(str(e)) from e
        self.error = None
        self._refresh_view()
        return op.to_record(self._find_committed(op.target_id()))

    def _queue_delete(self, record_id: str) -> dict[str, Any]:
        self.queue.enqueue_delete(record_id)
        self.error = None
        self._refresh_view()
        return {"id": record_id}

    def _has_local_work(self, record_id: str) -> bool:
        return is_pending_id(record_id) or self.queue.find_by_target(record_id) is not None

    def _commit(self, record: Record) -> Record:
        self.cache.clear()
        self._upsert_committed(record)
        self._refresh_view()
        return record

    async def add_contact(self, data: dict[str, Any]) -> Record:
        """
        Create a contact, or queue it when the backend is unreachable.

        Raises:
            RemoteValidationError: If the backend rejects the contact
        """
        payload = clean_payload(data)
        if self.is_offline:
            return self._queue_create(payload)

        try:
            record = await self.gateway.create(payload)
        except TransientNetworkError as e:
            logger.warning(f"Saving contact offline: {e}")
            self.monitor.mark_unreachable()
            return self._queue_create(payload)
        except GatewayError as e:
            logger.error(f"Add contact error: {e}")
            self.error = str(e)
            raise

        if payload.get("photo"):
            try:
                record = await self.gateway.update_media(record.id, payload["photo"])
            except TransientNetworkError as e:
                logger.warning(f"Photo for {record.id} queued: {e}")
                self.monitor.mark_unreachable()
                self._commit(record)
                return self._queue_update(record.id, {"photo": payload["photo"]})

        return self._commit(record)

    async def update_contact(self, record_id: str, data: dict[str, Any]) -> Record:
        """
        Update a contact, or queue the change when it cannot be sent now.

        Changes to records that already have queued work are merged into
        the queue so the latest edit is the one that reaches the backend.

        Raises:
            RecordNotFoundError: If the update has to be queued and the contact
                is unknown or already has a queued delete
            RemoteValidationError: If the backend rejects the change
        """
        payload = clean_payload(data)
        if self.is_offline or self._has_local_work(record_id):
            return self._queue_update(record_id, payload)

        try:
            record = await self.gateway.update(record_id, payload)
        except TransientNetworkError as e:
            logger.warning(f"Updating contact offline: {e}")
            self.monitor.mark_unreachable()
            return self._queue_update(record_id, payload)
        except GatewayError as e:
            logger.error(f"Update contact error: {e}")
            self.error = str(e)
            raise

        self.cache.delete(QueryCache.record_key(record_id))
        return self._commit(record)

    async def delete_contact(self, record_id: str) -> dict[str, Any]:
        """
        Delete a contact, or queue the delete when it cannot be sent now.

        Deleting an unsynced contact only drops it from the queue.

        Raises:
            RemoteValidationError: If the backend rejects the delete
        """
        if self.is_offline or self._has_local_work(record_id):
            return self._queue_delete(record_id)

        try:
            await self.gateway.remove(record_id)
        except TransientNetworkError as e:
            logger.warning(f"Deleting contact offline: {e}")
            self.monitor.mark_unreachable()
            return self._queue_delete(record_id)
        except GatewayError as e:
            logger.error(f"Delete contact error: {e}")
            self.error = str(e)
            raise

        self.cache.clear()
        self._drop_committed(record_id)
        self._refresh_view()
        return {"id": record_id}

    async def update_avatar(self, record_id: str, image_data: bytes) -> Record:
        """
        Replace a contact's photo with an image file's contents.

        Raises:
            PhotoError: If the image cannot be processed
            RecordNotFoundError: Same conditions as update_contact
            RemoteValidationError: If the backend rejects the photo
        """
        photo = encode_photo(image_data)
        if self.is_offline or self._has_local_work(record_id):
            return self._queue_update(record_id, {"photo": photo})

        try:
            record = await self.gateway.update_media(record_id, photo)
        except TransientNetworkError as e:
            logger.warning(f"Updating photo offline: {e}")
            self.monitor.mark_unreachable()
            return self._queue_update(record_id, {"photo": photo})
        except GatewayError as e:
            logger.error(f"Update avatar error: {e}")
            self.error = str(e)
            raise

        self.cache.delete(QueryCache.record_key(record_id))
        return self._commit(record)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def sync(self) -> ReconciliationResult:
        """Replay queued operations and refresh from the backend."""
        return await self.engine.sync()

    async def resend(self, local_id: str) -> DispatchResult:
        """Send one queued operation now; see ReconciliationEngine.resend."""
        try:
            return await self.engine.resend(local_id)
        except GatewayError as e:
            self.error = str(e)
            raise

    async def set_online_status(self, online: bool) -> None:
        """Forward a transport-level connectivity event to the monitor."""
        await self.monitor.set_transport_online(online)
        if self.monitor.is_offline:
            self._refresh_view()

    def clear_error(self) -> None:
        self.error = None
