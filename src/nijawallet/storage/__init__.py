"""Record persistence for sessions, activities and policy snapshots."""

from nijawallet.config import Settings
from nijawallet.storage.database import create_engine
from nijawallet.storage.base import (
    NAMESPACES,
    NS_ACTIVITY,
    NS_POLICY,
    NS_SESSION,
    KeyValueStore,
)
from nijawallet.storage.filestore import FileKeyValueStore
from nijawallet.storage.sqlstore import SqlKeyValueStore


def create_store(settings: Settings) -> KeyValueStore:
    """Build the backend selected by ``storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "file":
        return FileKeyValueStore(settings.data_dir)
    if backend == "sql":
        return SqlKeyValueStore(create_engine(settings), owns_engine=True)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")


__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "NAMESPACES",
    "NS_ACTIVITY",
    "NS_POLICY",
    "NS_SESSION",
    "SqlKeyValueStore",
    "create_store",
]
