"""Firestore-backed document store."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from google.api_core.exceptions import GoogleAPIError
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from firestore_records.domain.records import StoredDocument
from firestore_records.services.documents import (
    DocumentStore,
    DocumentStoreError,
    SnapshotCallback,
)

_logger = logging.getLogger(__name__)

_ResultT = TypeVar("_ResultT")


def where_equal(query: Any, field_path: str, value: object) -> Any:
    """Return ``query`` narrowed to documents whose field equals ``value``."""
    return query.where(filter=FieldFilter(field_path, "==", value))


def to_stored_document(snapshot: Any) -> StoredDocument:
    """Convert a Firestore document snapshot."""
    return StoredDocument(
        key=snapshot.id, data=snapshot.to_dict(), exists=snapshot.exists
    )


@dataclass
class FirestoreSubscription:
    """Wraps the watch handle returned by ``on_snapshot``."""

    watch: Any

    def unsubscribe(self) -> None:
        """Stop the Firestore listener."""
        self.watch.unsubscribe()


@dataclass
class FirestoreDocumentStore(DocumentStore):
    """Document store backed by a synchronous Firestore client.

    Blocking SDK calls run in worker threads; listener callbacks arrive on the
    SDK's own threads.
    """

    client: firestore.Client

    @classmethod
    def create(
        cls, project: str | None, database: str = "(default)"
    ) -> "FirestoreDocumentStore":
        """Create a store with a managed Firestore client."""
        return cls(client=firestore.Client(project=project, database=database))

    async def get(self, collection: str, key: str) -> StoredDocument:
        """Read the document stored under ``key``."""

        def read() -> StoredDocument:
            snapshot = self.client.collection(collection).document(key).get()
            return to_stored_document(snapshot)

        return await self._call(collection, key, read)

    async def list_all(self, collection: str) -> list[StoredDocument]:
        """Read every document in the collection."""

        def read() -> list[StoredDocument]:
            return [
                to_stored_document(snapshot)
                for snapshot in self.client.collection(collection).stream()
            ]

        return await self._call(collection, None, read)

    async def find_equal(
        self, collection: str, field: str, value: object
    ) -> list[StoredDocument]:
        """Read documents whose ``field`` equals ``value``."""

        def read() -> list[StoredDocument]:
            query = where_equal(self.client.collection(collection), field, value)
            return [to_stored_document(snapshot) for snapshot in query.stream()]

        return await self._call(collection, None, read)

    async def add(self, collection: str, data: dict[str, object]) -> str:
        """Add a document under a generated key."""

        def write() -> str:
            _update_time, reference = self.client.collection(collection).add(data)
            return reference.id

        return await self._call(collection, None, write)

    async def set(self, collection: str, key: str, data: dict[str, object]) -> None:
        """Replace the document under ``key`` without merging."""

        def write() -> None:
            self.client.collection(collection).document(key).set(data)

        await self._call(collection, key, write)

    async def delete(self, collection: str, key: str) -> None:
        """Delete the document under ``key``."""

        def write() -> None:
            self.client.collection(collection).document(key).delete()

        await self._call(collection, key, write)

    def listen_equal(
        self,
        collection: str,
        field: str,
        value: object,
        callback: SnapshotCallback,
    ) -> FirestoreSubscription:
        """Listen to documents whose ``field`` equals ``value``."""
        query = where_equal(self.client.collection(collection), field, value)

        def on_snapshot(snapshots, _changes, _read_time) -> None:  # type: ignore[no-untyped-def]
            callback([to_stored_document(snapshot) for snapshot in snapshots])

        try:
            watch = query.on_snapshot(on_snapshot)
        except GoogleAPIError as exc:
            raise DocumentStoreError(
                f"Failed to listen on {collection}: {exc}", collection
            ) from exc
        _logger.info("Listening on %s where %s == %s", collection, field, value)
        return FirestoreSubscription(watch)

    async def close(self) -> None:
        """Release the Firestore client's channel."""
        await asyncio.to_thread(self.client.close)

    async def _call(
        self, collection: str, key: str | None, operation: Callable[[], _ResultT]
    ) -> _ResultT:
        try:
            return await asyncio.to_thread(operation)
        except GoogleAPIError as exc:
            target = f"{collection}/{key}" if key else collection
            raise DocumentStoreError(
                f"Firestore call failed for {target}: {exc}", collection, key
            ) from exc
