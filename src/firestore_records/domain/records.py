"""Typed record capability and document value types."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import ClassVar, Protocol, Self, TypeVar

from pydantic import BaseModel

ID_FIELD = "id"
OWNER_FIELD = "ownerId"
FIRESTORE_ID_ATTRIBUTE = "firestore_id"


class DocumentRecord(Protocol):
    """Capabilities a domain type needs to be stored as a document.

    ``endpoint`` names the collection holding every document of the type.
    ``record_id`` is written to the ``id`` field and ``owner_id`` to the
    ``ownerId`` field. ``firestore_id`` is the store-assigned document key and
    never appears in the document body.
    """

    endpoint: ClassVar[str]

    @property
    def record_id(self) -> str | None:
        """Return the domain identifier, if any."""

    @property
    def owner_id(self) -> str | None:
        """Return the owning user id, if any."""

    @property
    def firestore_id(self) -> str | None:
        """Return the store-assigned document key, if any."""

    def to_document(self) -> dict[str, object]:
        """Encode the record into a document body."""

    @classmethod
    def from_document(cls, document_key: str, data: Mapping[str, object]) -> Self:
        """Decode a document body fetched under ``document_key``."""


RecordT = TypeVar("RecordT", bound=DocumentRecord)
ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class StoredDocument:
    """A document as returned by a store read or listener snapshot."""

    key: str
    data: dict[str, object] | None
    exists: bool = True


def dump_document(model: BaseModel) -> dict[str, object]:
    """Encode a pydantic record using field aliases, without its document key."""
    return model.model_dump(
        mode="json", by_alias=True, exclude={FIRESTORE_ID_ATTRIBUTE}
    )


def load_document(
    model_type: type[ModelT], document_key: str, data: Mapping[str, object]
) -> ModelT:
    """Decode a pydantic record and attach the document key."""
    payload = dict(data)
    payload[FIRESTORE_ID_ATTRIBUTE] = document_key
    return model_type.model_validate(payload)
