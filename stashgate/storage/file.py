"""
Durable file-system store backend.

Layout::

    <root>/
        <generation>/
            <sha256(key)>.json

Each entry is one JSON document. Writes go to a temporary file in the same
directory, are flushed and fsynced, then moved into place with os.replace, so
readers never see a partially written entry and concurrent writers to the
same key resolve last-write-wins. Blocking file I/O runs in a worker thread
to keep the event loop responsive.
"""

import asyncio
import hashlib
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from stashgate.core.models import CacheEntry
from stashgate.exceptions import StorageReadError, StorageWriteError
from stashgate.logging_config import get_logger
from stashgate.storage.base import StorageBackend

logger = get_logger(__name__)

ENTRY_SUFFIX = ".json"
TEMP_PREFIX = ".tmp-"


class FileStorageBackend(StorageBackend):
    """
    Store backend persisting generations as directories on disk.

    Implements:
    - One directory per generation
    - One JSON document per entry, named by the SHA-256 of its key
    - Atomic replace-on-write for every entry
    """

    def __init__(self, root: str):
        """
        Initialize FileStorageBackend.

        Args:
            root: Directory holding all generations (created if missing)
        """
        self.root = Path(root).expanduser()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageWriteError(f"Failed to create store root {self.root}: {e}") from e

        logger.info(f"Initialized FileStorageBackend at {self.root}")

    def _generation_dir(self, generation: str) -> Path:
        if not generation or generation.startswith(".") or "/" in generation or os.sep in generation:
            raise StorageWriteError(f"Invalid generation name: {generation!r}")
        return self.root / generation

    @staticmethod
    def _entry_filename(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest() + ENTRY_SUFFIX

    # Blocking helpers, executed via asyncio.to_thread

    def _open_sync(self, generation: str) -> None:
        self._generation_dir(generation).mkdir(exist_ok=True)

    def _get_sync(self, generation: str, key: str) -> Optional[CacheEntry]:
        path = self._generation_dir(generation) / self._entry_filename(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        return CacheEntry.from_dict(data)

    def _put_sync(self, generation: str, entry: CacheEntry) -> None:
        directory = self._generation_dir(generation)
        directory.mkdir(exist_ok=True)
        target = directory / self._entry_filename(entry.key)

        fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry.to_dict(), f, separators=(",", ":"))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    def _delete_sync(self, generation: str) -> bool:
        directory = self._generation_dir(generation)
        if not directory.is_dir():
            return False
        shutil.rmtree(directory)
        return True

    def _list_names_sync(self) -> List[str]:
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )

    def _keys_sync(self, generation: str) -> List[str]:
        directory = self._generation_dir(generation)
        if not directory.is_dir():
            return []
        keys = []
        for path in sorted(directory.glob(f"*{ENTRY_SUFFIX}")):
            with open(path, "r", encoding="utf-8") as f:
                keys.append(json.load(f)["key"])
        return keys

    # StorageBackend interface

    async def open(self, generation: str) -> None:
        try:
            await asyncio.to_thread(self._open_sync, generation)
        except OSError as e:
            raise StorageWriteError(f"Failed to open generation {generation}: {e}") from e

    async def has(self, generation: str) -> bool:
        return await asyncio.to_thread(self._generation_dir(generation).is_dir)

    async def get(self, generation: str, key: str) -> Optional[CacheEntry]:
        try:
            return await asyncio.to_thread(self._get_sync, generation, key)
        except (OSError, ValueError, KeyError) as e:
            raise StorageReadError(
                f"Failed to read {key} from generation {generation}: {e}"
            ) from e

    async def put(self, generation: str, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(self._put_sync, generation, entry)
        except (OSError, TypeError, ValueError) as e:
            raise StorageWriteError(
                f"Failed to write {entry.key} to generation {generation}: {e}"
            ) from e

    async def delete(self, generation: str) -> bool:
        try:
            deleted = await asyncio.to_thread(self._delete_sync, generation)
        except OSError as e:
            raise StorageWriteError(f"Failed to delete generation {generation}: {e}") from e
        if deleted:
            logger.info(f"Deleted generation {generation}")
        return deleted

    async def list_names(self) -> List[str]:
        try:
            return await asyncio.to_thread(self._list_names_sync)
        except OSError as e:
            raise StorageReadError(f"Failed to enumerate generations in {self.root}: {e}") from e

    async def keys(self, generation: str) -> List[str]:
        try:
            return await asyncio.to_thread(self._keys_sync, generation)
        except (OSError, ValueError, KeyError) as e:
            raise StorageReadError(f"Failed to enumerate keys of {generation}: {e}") from e
