"""Dependency container wiring for the document client."""

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from firestore_records.adapters.firestore_document_store import (
    FirestoreDocumentStore,
)
from firestore_records.app_logging import configure_logging
from firestore_records.config import Settings
from firestore_records.services.documents import DocumentStore, TypedDocumentClient
from firestore_records.services.sessions import StaticSessionProvider

_EMULATOR_ENV = "FIRESTORE_EMULATOR_HOST"


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    document_store: DocumentStore
    session: StaticSessionProvider
    document_client: TypedDocumentClient
    close_resources: Callable[[], Awaitable[None]]


def point_at_emulator(host: str | None) -> None:
    """Export the emulator host for the Firestore SDK.

    An existing ``FIRESTORE_EMULATOR_HOST`` takes precedence over the setting.
    """
    if not host:
        return
    current = os.environ.get(_EMULATOR_ENV)
    if current and current != host:
        logging.getLogger(__name__).warning(
            "%s=%s overrides firestore_emulator_host=%s", _EMULATOR_ENV, current, host
        )
        return
    os.environ[_EMULATOR_ENV] = host


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    configure_logging(resolved_settings.log_level)
    point_at_emulator(resolved_settings.firestore_emulator_host)
    document_store = FirestoreDocumentStore.create(
        project=resolved_settings.gcp_project_id,
        database=resolved_settings.firestore_database,
    )
    session = StaticSessionProvider()
    document_client = TypedDocumentClient(store=document_store, session=session)

    async def close_resources() -> None:
        await document_store.close()

    return AppContainer(
        settings=resolved_settings,
        document_store=document_store,
        session=session,
        document_client=document_client,
        close_resources=close_resources,
    )
