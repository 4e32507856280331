"""
Store backends for Stashgate.

- StorageBackend: abstract generation-organised key/value store
- MemoryStorageBackend: process-local store with an optional entry bound
- FileStorageBackend: durable directory-per-generation store
"""

from stashgate.config import StorageConfig
from stashgate.exceptions import ConfigurationError
from stashgate.storage.base import StorageBackend
from stashgate.storage.file import FileStorageBackend
from stashgate.storage.memory import MemoryStorageBackend, StorageStats


def create_storage(config: StorageConfig) -> StorageBackend:
    """
    Create the store backend named by *config*.

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    if config.backend == "memory":
        return MemoryStorageBackend(config.max_entries_per_generation)
    if config.backend == "file":
        return FileStorageBackend(config.path)
    raise ConfigurationError(f"Unknown storage backend: {config.backend!r}")


__all__ = [
    "StorageBackend",
    "MemoryStorageBackend",
    "FileStorageBackend",
    "StorageStats",
    "create_storage",
]
