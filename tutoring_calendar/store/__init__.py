"""Document store backends for calendar data."""
from __future__ import annotations

from typing import Optional

from ..config import Settings, load_settings
from .base import (
    MAX_BATCH_SIZE,
    BatchOp,
    DocumentStore,
    QueryFilter,
    StoreError,
    StoreSnapshot,
    Subscription,
    chunked,
)
from .file_store import FileDocumentStore


def get_document_store(settings: Optional[Settings] = None) -> DocumentStore:
    """Return the configured store: Firestore, or local files in dev mode."""

    settings = settings or load_settings()
    if settings.force_file_store:
        return FileDocumentStore(settings.store_dir)

    from .firestore_store import FirestoreDocumentStore

    return FirestoreDocumentStore()


__all__ = [
    "MAX_BATCH_SIZE",
    "BatchOp",
    "DocumentStore",
    "QueryFilter",
    "StoreError",
    "StoreSnapshot",
    "Subscription",
    "chunked",
    "FileDocumentStore",
    "get_document_store",
]
