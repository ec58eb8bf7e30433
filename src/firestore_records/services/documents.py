"""Typed access to document collections."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from firestore_records.domain.records import (
    ID_FIELD,
    OWNER_FIELD,
    DocumentRecord,
    RecordT,
    StoredDocument,
)
from firestore_records.services.sessions import SessionProvider
from firestore_records.services.snapshots import SnapshotStream, Subscription

_logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[StoredDocument]], None]


class DocumentStoreError(Exception):
    """Raised by store adapters when a backend call fails."""

    def __init__(
        self, message: str, collection: str, key: str | None = None
    ) -> None:
        super().__init__(message)
        self.collection = collection
        self.key = key


class DocumentStore(Protocol):
    """Persistence interface for collection-scoped documents."""

    async def get(self, collection: str, key: str) -> StoredDocument:
        """Return the document stored under ``key``."""

    async def list_all(self, collection: str) -> list[StoredDocument]:
        """Return every document in a collection."""

    async def find_equal(
        self, collection: str, field: str, value: object
    ) -> list[StoredDocument]:
        """Return documents whose ``field`` equals ``value``."""

    async def add(self, collection: str, data: dict[str, object]) -> str:
        """Store a document under a generated key and return the key."""

    async def set(self, collection: str, key: str, data: dict[str, object]) -> None:
        """Replace the document stored under ``key``."""

    async def delete(self, collection: str, key: str) -> None:
        """Delete the document stored under ``key``."""

    def listen_equal(
        self,
        collection: str,
        field: str,
        value: object,
        callback: SnapshotCallback,
    ) -> Subscription:
        """Call ``callback`` with the full matching set on every change."""


@dataclass
class TypedDocumentClient:
    """Maps typed records to documents in their collections.

    Every failure is logged and degraded to an empty list, ``None`` or a plain
    return. Callers cannot tell "no matching records" from "the call failed".
    """

    store: DocumentStore
    session: SessionProvider

    async def fetch_owned(
        self, record_type: type[RecordT], owner_id: str | None = None
    ) -> list[RecordT]:
        """Return records owned by ``owner_id`` or by the signed-in user."""
        if owner_id is None:
            owner_id = self.session.current_user_id()
        if owner_id is None:
            _logger.info("No signed-in user; no owned %s", record_type.__name__)
            return []
        try:
            documents = await self.store.find_equal(
                record_type.endpoint, OWNER_FIELD, owner_id
            )
        except Exception:
            _logger.exception(
                "Error while requesting %s owned by %s",
                record_type.__name__,
                owner_id,
            )
            return []
        _logger.info("Found %s owned documents", len(documents))
        return self._decode_all(record_type, documents)

    async def fetch_all(self, record_type: type[RecordT]) -> list[RecordT]:
        """Return every record in the collection for ``record_type``."""
        try:
            documents = await self.store.list_all(record_type.endpoint)
        except Exception:
            _logger.exception("Error while requesting all %s", record_type.__name__)
            return []
        _logger.info("Found %s documents", len(documents))
        return self._decode_all(record_type, documents)

    async def fetch_one(
        self, record_type: type[RecordT], document_key: str
    ) -> RecordT | None:
        """Return the record stored under ``document_key``, if readable."""
        try:
            document = await self.store.get(record_type.endpoint, document_key)
        except Exception:
            _logger.exception(
                "Error while requesting %s with ID %s",
                record_type.__name__,
                document_key,
            )
            return None
        if not document.exists or document.data is None:
            _logger.warning(
                "Error while requesting %s with ID %s: document does not exist",
                record_type.__name__,
                document_key,
            )
            return None
        return self._decode(record_type, document)

    async def upsert(self, record: DocumentRecord) -> None:
        """Replace the document at the record's store key.

        Records without a store key are ignored.
        """
        record_type = type(record)
        document_key = record.firestore_id
        if document_key is None:
            _logger.debug(
                "Skipping set of %s without a document key", record_type.__name__
            )
            return
        try:
            await self.store.set(
                record_type.endpoint, document_key, record.to_document()
            )
        except Exception:
            _logger.exception(
                "Error while setting %s with ID %s",
                record_type.__name__,
                document_key,
            )

    async def create_one(self, record: DocumentRecord) -> None:
        """Add the record as a new document with a generated key."""
        record_type = type(record)
        try:
            document_key = await self.store.add(
                record_type.endpoint, record.to_document()
            )
        except Exception:
            _logger.exception(
                "Error while creating %s with ID %s",
                record_type.__name__,
                record.record_id,
            )
            return
        _logger.info("Created %s document %s", record_type.__name__, document_key)

    async def create_many(self, records: Sequence[DocumentRecord]) -> None:
        """Create every record concurrently and wait for all of them."""
        async with asyncio.TaskGroup() as group:
            for record in records:
                group.create_task(self.create_one(record))

    async def delete_many(self, records: Sequence[DocumentRecord]) -> None:
        """Delete the documents matching each record's domain id."""
        async with asyncio.TaskGroup() as group:
            for record in records:
                group.create_task(self._delete_matching(record))

    async def observe_owned(
        self, record_type: type[RecordT]
    ) -> SnapshotStream[RecordT]:
        """Stream full snapshots of the signed-in user's records.

        Without a signed-in user the stream yields one empty list and ends.
        Otherwise it stays open until closed, which unregisters the store
        listener.
        """
        owner_id = self.session.current_user_id()
        description = f"{record_type.__name__} owned by {owner_id}"
        if owner_id is None:
            _logger.info("No signed-in user; not observing %s", record_type.__name__)
            return SnapshotStream.single(description, [])

        stream: SnapshotStream[RecordT] = SnapshotStream(description)

        def on_snapshot(documents: list[StoredDocument]) -> None:
            stream.publish(self._decode_all(record_type, documents))

        try:
            subscription = self.store.listen_equal(
                record_type.endpoint, OWNER_FIELD, owner_id, on_snapshot
            )
        except Exception:
            _logger.exception("Error while observing %s", description)
            stream.close()
            return SnapshotStream.single(description, [])
        stream.attach(subscription)
        _logger.info("Observing %s", description)
        return stream

    async def _delete_matching(self, record: DocumentRecord) -> None:
        record_type = type(record)
        record_id = record.record_id
        if record_id is None:
            _logger.debug("Skipping delete of %s without an ID", record_type.__name__)
            return
        try:
            matches = await self.store.find_equal(
                record_type.endpoint, ID_FIELD, record_id
            )
            if not matches:
                _logger.info(
                    "No %s document with ID %s to delete",
                    record_type.__name__,
                    record_id,
                )
                return
            await self.store.delete(record_type.endpoint, matches[0].key)
        except Exception:
            _logger.exception(
                "Error while deleting %s with ID %s", record_type.__name__, record_id
            )

    def _decode_all(
        self, record_type: type[RecordT], documents: list[StoredDocument]
    ) -> list[RecordT]:
        _logger.debug("Decoding objects of type %s", record_type.__name__)
        records: list[RecordT] = []
        for document in documents:
            if not document.exists or document.data is None:
                _logger.warning(
                    "Error while decoding %s: document %s does not exist",
                    record_type.__name__,
                    document.key,
                )
                continue
            record = self._decode(record_type, document)
            if record is not None:
                records.append(record)
        return records

    def _decode(
        self, record_type: type[RecordT], document: StoredDocument
    ) -> RecordT | None:
        try:
            return record_type.from_document(document.key, document.data or {})
        except Exception as exc:
            _logger.warning(
                "Error while decoding %s with ID %s: %s",
                record_type.__name__,
                document.key,
                exc,
            )
            return None
