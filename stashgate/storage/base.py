"""
Store backend abstraction.

A store backend is a durable key/value byte store organised into independently
named generations. Implementations must support concurrent reads, concurrent
writes to different keys, and a last-write-wins outcome for concurrent writes
to the same key.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from stashgate.core.models import CacheEntry


class StorageBackend(ABC):
    """
    Abstract store backend.

    All operations are coroutines; every one of them is a suspension point
    for the calling task. Implementations raise StorageReadError or
    StorageWriteError when the underlying store fails.
    """

    @abstractmethod
    async def open(self, generation: str) -> None:
        """Open a generation, creating it if it does not exist."""

    @abstractmethod
    async def has(self, generation: str) -> bool:
        """Return True if the generation exists."""

    @abstractmethod
    async def get(self, generation: str, key: str) -> Optional[CacheEntry]:
        """
        Look up an entry.

        Returns None if either the generation or the key is missing. Looking
        up a missing generation does not create it.
        """

    @abstractmethod
    async def put(self, generation: str, entry: CacheEntry) -> None:
        """Store an entry, replacing any existing entry with the same key."""

    @abstractmethod
    async def delete(self, generation: str) -> bool:
        """
        Delete a generation with all its entries.

        Returns:
            True if the generation existed
        """

    @abstractmethod
    async def list_names(self) -> List[str]:
        """Enumerate existing generation names."""

    @abstractmethod
    async def keys(self, generation: str) -> List[str]:
        """Enumerate entry keys of a generation (empty if it does not exist)."""

    async def close(self) -> None:
        """Release resources held by the backend."""
        return None
