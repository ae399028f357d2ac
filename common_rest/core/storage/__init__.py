from __future__ import annotations

from ..settings import Settings
from .base import BulkUpdateError, BulkUpdateResult, CounterStore, DocumentStore, StorageBackend, UpdateOp
from .schema import StorageSchema

BACKEND_NAMES = ("file", "mongo")


def create_backend(settings: Settings) -> StorageBackend:
    if settings.storage == "file":
        from .file import FileBackend

        return FileBackend(data_dir=settings.data_dir)
    if settings.storage == "mongo":
        from .mongo import MongoBackend

        return MongoBackend(url=settings.mongo_url, db_name=settings.mongo_db)
    raise ValueError(f"unknown storage backend {settings.storage!r} (expected one of {', '.join(BACKEND_NAMES)})")


__all__ = [
    "BACKEND_NAMES",
    "BulkUpdateError",
    "BulkUpdateResult",
    "CounterStore",
    "DocumentStore",
    "StorageBackend",
    "StorageSchema",
    "UpdateOp",
    "create_backend",
]
