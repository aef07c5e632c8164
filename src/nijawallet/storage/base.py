"""Key-value persistence interface.

State is kept as independent records: one per session (keyed by session id),
one per activity (keyed by transaction hash) and one policy snapshot per
wallet identity. A crash while writing one record never corrupts another.
"""

from abc import ABC, abstractmethod
from typing import Optional

NS_SESSION = "session"
NS_ACTIVITY = "activity"
NS_POLICY = "policy"

NAMESPACES = (NS_SESSION, NS_ACTIVITY, NS_POLICY)


class KeyValueStore(ABC):
    """Async JSON record store partitioned by namespace.

    Values are plain JSON-serializable dicts. Implementations must make each
    put durable before returning.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for health output."""
        pass

    async def open(self) -> None:
        """Prepare the backend (create directories, tables)."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def get(self, namespace: str, key: str) -> Optional[dict]:
        """Read a record, or None if absent."""
        pass

    @abstractmethod
    async def put(self, namespace: str, key: str, value: dict) -> None:
        """Create or replace a record."""
        pass

    @abstractmethod
    async def delete(self, namespace: str, key: str) -> bool:
        """Delete a record.

        Returns:
            True if a record was removed
        """
        pass

    @abstractmethod
    async def list(self, namespace: str) -> list[dict]:
        """All records in a namespace, in no particular order."""
        pass


def check_namespace(namespace: str) -> str:
    if namespace not in NAMESPACES:
        raise ValueError(f"Unknown namespace: {namespace}")
    return namespace
