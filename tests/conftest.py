"""Shared test fixtures."""

import asyncio
import itertools
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import ClassVar, Self

import pytest
from pydantic import BaseModel, ConfigDict, Field

from firestore_records.domain.records import (
    StoredDocument,
    dump_document,
    load_document,
)
from firestore_records.services.documents import (
    DocumentStore,
    DocumentStoreError,
    SnapshotCallback,
    TypedDocumentClient,
)
from firestore_records.services.sessions import StaticSessionProvider


class Habit(BaseModel):
    """Pydantic-backed record used across tests."""

    endpoint: ClassVar[str] = "habits"
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    owner_id: str | None = Field(default=None, alias="ownerId")
    firestore_id: str | None = Field(default=None, exclude=True)
    title: str
    streak: int = 0

    @property
    def record_id(self) -> str | None:
        return self.id

    def to_document(self) -> dict[str, object]:
        return dump_document(self)

    @classmethod
    def from_document(cls, document_key: str, data: Mapping[str, object]) -> Self:
        return load_document(cls, document_key, data)


@dataclass(frozen=True)
class Note:
    """Plain dataclass record with hand-written encoding."""

    endpoint: ClassVar[str] = "notes"

    text: str
    record_id: str | None = None
    owner_id: str | None = None
    firestore_id: str | None = None

    def to_document(self) -> dict[str, object]:
        return {"id": self.record_id, "ownerId": self.owner_id, "text": self.text}

    @classmethod
    def from_document(cls, document_key: str, data: Mapping[str, object]) -> Self:
        return cls(
            text=str(data["text"]),
            record_id=data.get("id"),  # type: ignore[arg-type]
            owner_id=data.get("ownerId"),  # type: ignore[arg-type]
            firestore_id=document_key,
        )


@dataclass(frozen=True)
class Unencodable:
    """Record whose encoding always fails."""

    endpoint: ClassVar[str] = "broken"

    record_id: str | None = "broken-1"
    owner_id: str | None = None
    firestore_id: str | None = "doc-broken"

    def to_document(self) -> dict[str, object]:
        raise TypeError("cannot encode")

    @classmethod
    def from_document(cls, document_key: str, data: Mapping[str, object]) -> Self:
        return cls(firestore_id=document_key)


@dataclass(eq=False)
class _Listener:
    store: "InMemoryDocumentStore"
    collection: str
    field: str
    value: object
    callback: SnapshotCallback
    last: list[tuple[str, dict[str, object]]] | None = None
    unsubscribe_calls: int = 0

    def matches(self) -> list[StoredDocument]:
        documents = self.store.collections.get(self.collection, {})
        return [
            StoredDocument(key=key, data=dict(data))
            for key, data in documents.items()
            if data.get(self.field) == self.value
        ]

    def fire(self) -> None:
        current = self.matches()
        signature = [(document.key, document.data or {}) for document in current]
        if signature == self.last:
            return
        self.last = signature
        self.callback(current)

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        if self in self.store.listeners:
            self.store.listeners.remove(self)


@dataclass
class InMemoryDocumentStore(DocumentStore):
    """In-memory document store that mimics generated keys and listeners."""

    collections: dict[str, dict[str, dict[str, object]]] = field(
        default_factory=dict
    )
    listeners: list[_Listener] = field(default_factory=list)
    failing: set[str] = field(default_factory=set)
    add_delays: list[float] = field(default_factory=list)
    completed_adds: list[str] = field(default_factory=list)
    _keys: itertools.count = field(default_factory=lambda: itertools.count(1))

    def seed(self, collection: str, key: str, data: dict[str, object]) -> None:
        self.collections.setdefault(collection, {})[key] = dict(data)

    async def get(self, collection: str, key: str) -> StoredDocument:
        self._check("get", collection, key)
        await asyncio.sleep(0)
        data = self.collections.get(collection, {}).get(key)
        if data is None:
            return StoredDocument(key=key, data=None, exists=False)
        return StoredDocument(key=key, data=dict(data))

    async def list_all(self, collection: str) -> list[StoredDocument]:
        self._check("list_all", collection)
        await asyncio.sleep(0)
        return [
            StoredDocument(key=key, data=dict(data))
            for key, data in self.collections.get(collection, {}).items()
        ]

    async def find_equal(
        self, collection: str, field: str, value: object
    ) -> list[StoredDocument]:
        self._check("find_equal", collection)
        await asyncio.sleep(0)
        return [
            StoredDocument(key=key, data=dict(data))
            for key, data in self.collections.get(collection, {}).items()
            if data.get(field) == value
        ]

    async def add(self, collection: str, data: dict[str, object]) -> str:
        self._check("add", collection)
        delay = self.add_delays.pop(0) if self.add_delays else 0
        await asyncio.sleep(delay)
        key = f"doc-{next(self._keys)}"
        self.collections.setdefault(collection, {})[key] = dict(data)
        self.completed_adds.append(key)
        self._notify(collection)
        return key

    async def set(self, collection: str, key: str, data: dict[str, object]) -> None:
        self._check("set", collection, key)
        await asyncio.sleep(0)
        self.collections.setdefault(collection, {})[key] = dict(data)
        self._notify(collection)

    async def delete(self, collection: str, key: str) -> None:
        self._check("delete", collection, key)
        await asyncio.sleep(0)
        self.collections.get(collection, {}).pop(key, None)
        self._notify(collection)

    def listen_equal(
        self,
        collection: str,
        field: str,
        value: object,
        callback: SnapshotCallback,
    ) -> _Listener:
        self._check("listen_equal", collection)
        listener = _Listener(self, collection, field, value, callback)
        self.listeners.append(listener)
        listener.fire()
        return listener

    def _notify(self, collection: str) -> None:
        for listener in list(self.listeners):
            if listener.collection == collection:
                listener.fire()

    def _check(self, operation: str, collection: str, key: str | None = None) -> None:
        if operation in self.failing:
            raise DocumentStoreError(f"{operation} unavailable", collection, key)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def session() -> StaticSessionProvider:
    return StaticSessionProvider()


@pytest.fixture
def client(
    store: InMemoryDocumentStore, session: StaticSessionProvider
) -> TypedDocumentClient:
    return TypedDocumentClient(store=store, session=session)


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("firestore_records")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
