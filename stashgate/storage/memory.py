"""
In-memory store backend.

Keeps each generation in its own mapping. When a per-generation bound is
configured, generations are backed by a cachetools Cache that refuses new
keys once full instead of evicting: entries only disappear together with
their generation.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, MutableMapping, Optional

from cachetools import Cache

from stashgate.core.models import CacheEntry
from stashgate.exceptions import StorageWriteError
from stashgate.logging_config import get_logger
from stashgate.storage.base import StorageBackend

logger = get_logger(__name__)


class BoundedGeneration(Cache):
    """Size-bounded generation mapping that never evicts."""

    def popitem(self):
        raise StorageWriteError(f"Generation is full ({self.maxsize} entries)")


@dataclass
class StorageStats:
    """
    Store statistics for monitoring.

    Attributes:
        generation_count: Number of existing generations
        entry_count: Total entries across all generations
        hit_count: Lookups that found an entry
        miss_count: Lookups that found nothing
        hit_rate: Percentage of hits (hits / (hits + misses))
    """
    generation_count: int
    entry_count: int
    hit_count: int
    miss_count: int
    hit_rate: float


class MemoryStorageBackend(StorageBackend):
    """
    Process-local store backend.

    Entries do not survive a restart; use FileStorageBackend for durability.
    All operations are serialized by one asyncio.Lock, so concurrent writes to
    the same key resolve to whichever write ran last.
    """

    def __init__(self, max_entries_per_generation: Optional[int] = None):
        """
        Initialize MemoryStorageBackend.

        Args:
            max_entries_per_generation: Optional bound per generation; a put
                of a new key into a full generation raises StorageWriteError
        """
        self.max_entries_per_generation = max_entries_per_generation
        self._generations: Dict[str, MutableMapping[str, CacheEntry]] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

        logger.debug(
            f"Initialized MemoryStorageBackend: "
            f"max_entries_per_generation={max_entries_per_generation}"
        )

    def _new_generation(self) -> MutableMapping[str, CacheEntry]:
        if self.max_entries_per_generation is None:
            return {}
        return BoundedGeneration(maxsize=self.max_entries_per_generation)

    async def open(self, generation: str) -> None:
        async with self._lock:
            if generation not in self._generations:
                self._generations[generation] = self._new_generation()
                logger.debug(f"Created generation {generation}")

    async def has(self, generation: str) -> bool:
        async with self._lock:
            return generation in self._generations

    async def get(self, generation: str, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entries = self._generations.get(generation)
            entry = entries.get(key) if entries is not None else None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return CacheEntry(key=entry.key, response=entry.response.copy(), stored_at=entry.stored_at)

    async def put(self, generation: str, entry: CacheEntry) -> None:
        async with self._lock:
            entries = self._generations.get(generation)
            if entries is None:
                entries = self._new_generation()
                self._generations[generation] = entries
            try:
                entries[entry.key] = CacheEntry(
                    key=entry.key,
                    response=entry.response.copy(),
                    stored_at=entry.stored_at,
                )
            except StorageWriteError as e:
                raise StorageWriteError(f"Cannot store {entry.key} in {generation}: {e}") from e

    async def delete(self, generation: str) -> bool:
        async with self._lock:
            entries = self._generations.pop(generation, None)
            if entries is None:
                return False
            logger.info(f"Deleted generation {generation} ({len(entries)} entries)")
            return True

    async def list_names(self) -> List[str]:
        async with self._lock:
            return list(self._generations.keys())

    async def keys(self, generation: str) -> List[str]:
        async with self._lock:
            return list(self._generations.get(generation, {}).keys())

    def get_stats(self) -> StorageStats:
        total_lookups = self._hits + self._misses
        hit_rate = (self._hits / total_lookups * 100) if total_lookups > 0 else 0.0

        return StorageStats(
            generation_count=len(self._generations),
            entry_count=sum(len(entries) for entries in self._generations.values()),
            hit_count=self._hits,
            miss_count=self._misses,
            hit_rate=hit_rate,
        )
