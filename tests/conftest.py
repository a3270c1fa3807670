"""
Shared fixtures for the offline_contacts test suite.

FakeGateway stands in for the GraphQL backend: it keeps contacts in memory,
counts calls, and raises TransientNetworkError while ``online`` is False.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import pytest

from offline_contacts.api.gateway import (
    ContactPage,
    NotFoundError,
    RemoteValidationError,
    TransientNetworkError,
)
from offline_contacts.storage.session import SessionStorage
from offline_contacts.sync.projector import paginate, project
from offline_contacts.sync.record import Record, clean_payload
from offline_contacts.sync.store import ContactStore


class FakeGateway:
    """In-memory backend with the RemoteGateway interface."""

    def __init__(self, records: Optional[list[Record]] = None):
        self.records: dict[str, Record] = {}
        self.online = True
        self.calls: list[tuple[str, Any]] = []
        self.reject: dict[str, str] = {}
        self.before_call: Optional[Callable[[str, Any], Awaitable[None]]] = None
        self.fail_media = False
        self._next_id = 1
        self._clock = 0
        for record in records or []:
            self.records[record.id] = record

    def _timestamp(self) -> str:
        self._clock += 1
        return f"2024-06-15T10:{self._clock // 60:02d}:{self._clock % 60:02d}.000Z"

    def seed(self, name: str, phone: str) -> Record:
        record = Record(
            id=str(self._next_id),
            name=name,
            phone=phone,
            created_at=self._timestamp(),
        )
        record.updated_at = record.created_at
        self._next_id += 1
        self.records[record.id] = record
        return record

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def _enter(self, method: str, arg: Any) -> None:
        self.calls.append((method, arg))
        if self.before_call is not None:
            await self.before_call(method, arg)
        await asyncio.sleep(0)
        if not self.online:
            raise TransientNetworkError(f"{method} connection failed")
        if method in self.reject:
            raise RemoteValidationError(self.reject[method])

    def _existing(self, record_id: str) -> Record:
        if record_id not in self.records:
            raise NotFoundError(f"Contact {record_id} not found")
        return self.records[record_id]

    async def list_contacts(
        self,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "name",
        sort_order: str = "asc",
        search: str = "",
    ) -> ContactPage:
        await self._enter("list_contacts", (page, limit, sort_by, sort_order, search))
        ordered = project(list(self.records.values()), sort_by, sort_order, search)
        page_records, pages, _ = paginate(ordered, page, limit)
        return ContactPage(
            records=page_records, page=page, limit=limit, pages=pages, total=len(ordered)
        )

    async def get_one(self, record_id: str) -> Record:
        await self._enter("get_one", record_id)
        return self._existing(record_id)

    async def create(self, input_data: dict[str, Any]) -> Record:
        await self._enter("create", dict(input_data))
        record = Record(
            id=str(self._next_id),
            name=input_data.get("name", ""),
            phone=input_data.get("phone", ""),
            created_at=self._timestamp(),
        )
        record.updated_at = record.created_at
        self._next_id += 1
        self.records[record.id] = record
        return record

    async def update(self, record_id: str, input_data: dict[str, Any]) -> Record:
        await self._enter("update", (record_id, dict(input_data)))
        current = self._existing(record_id)
        updated = current.with_changes(clean_payload(input_data), updatedAt=self._timestamp())
        self.records[record_id] = updated
        return updated

    async def remove(self, record_id: str) -> dict[str, Any]:
        await self._enter("remove", record_id)
        self._existing(record_id)
        del self.records[record_id]
        return {"id": record_id}

    async def update_media(self, record_id: str, photo: str) -> Record:
        await self._enter("update_media", record_id)
        if self.fail_media:
            raise TransientNetworkError("updateAvatar connection failed")
        current = self._existing(record_id)
        updated = current.with_changes({"photo": photo}, updatedAt=self._timestamp())
        self.records[record_id] = updated
        return updated

    async def ping(self, timeout: Optional[float] = None) -> bool:
        self.calls.append(("ping", timeout))
        return self.online


@pytest.fixture
def gateway():
    """Fake backend holding three contacts."""
    fake = FakeGateway()
    fake.seed("Carla", "555-0103")
    fake.seed("Ana", "555-0101")
    fake.seed("Bruno", "555-0102")
    return fake


@pytest.fixture
def storage():
    """Initialized in-memory session storage."""
    store = SessionStorage(":memory:")
    store.initialize()
    return store


@pytest.fixture
def store(gateway, storage):
    """Contact store wired to the fake backend with no debounce delay."""
    return ContactStore(gateway, storage, page_size=2, debounce_delay=0)
