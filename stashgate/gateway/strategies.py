"""
Caching strategies.

CacheFirstStrategy serves static assets from the static generation and only
goes to the network on a miss. NetworkFirstStrategy prefers fresh network
responses and falls back to the dynamic generation, then to the pinned
application shell, when the network is unavailable.

Neither strategy raises for network or store failures: network failures end
in a fallback chain, store read failures count as misses and store write
failures skip the write.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog

from stashgate.core.models import CacheEntry, RequestDescriptor, Response, Strategy
from stashgate.exceptions import NetworkError, StorageError
from stashgate.logging_config import get_logger, log_strategy_outcome
from stashgate.network.fetcher import NetworkFetcher
from stashgate.storage.base import StorageBackend

logger = get_logger(__name__)

CACHE_FIRST_OFFLINE_BODY = "离线状态"
NETWORK_FIRST_OFFLINE_BODY = "离线状态 - 请检查网络连接"
NETWORK_FIRST_OFFLINE_CONTENT_TYPE = "text/plain; charset=utf-8"
OFFLINE_STATUS = 503


def cache_first_offline_response() -> Response:
    """Synthetic response for a cache-first miss while offline. No content type."""
    return Response(status=OFFLINE_STATUS, body=CACHE_FIRST_OFFLINE_BODY.encode("utf-8"))


def network_first_offline_response() -> Response:
    """Synthetic response for a network-first request with nothing cached."""
    return Response(
        status=OFFLINE_STATUS,
        headers={"Content-Type": NETWORK_FIRST_OFFLINE_CONTENT_TYPE},
        body=NETWORK_FIRST_OFFLINE_BODY.encode("utf-8"),
    )


class CachingStrategy(ABC):
    """
    Shared store access for strategies.

    Store failures never escape: a failed read is reported as a miss and a
    failed write is skipped, both with a warning. Writes are also skipped once
    *is_current* reports that the owning version has been superseded, so a
    request still in flight during activation of a newer version cannot
    recreate a generation that activation already deleted.
    """

    name: Strategy

    def __init__(
        self,
        storage: StorageBackend,
        fetcher: NetworkFetcher,
        generation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        is_current: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            storage: Store backend
            fetcher: Network fetcher
            generation: Name of the generation this strategy reads and writes
            logger: Structured logger; defaults to the module logger
            is_current: Returns False once the owning version is no longer
                active; defaults to always current
        """
        self.storage = storage
        self.fetcher = fetcher
        self.generation = generation
        self.is_current = is_current if is_current is not None else (lambda: True)
        self.logger = logger if logger is not None else get_logger(__name__)

    async def _lookup(self, key: str) -> Optional[Response]:
        try:
            entry = await self.storage.get(self.generation, key)
        except StorageError as e:
            self.logger.warning(f"Store read failed for {key} in {self.generation}, treating as miss: {e}")
            return None
        return entry.response if entry is not None else None

    async def _store(self, key: str, response: Response) -> None:
        if not self.is_current():
            self.logger.info(f"Version superseded, not storing {key} in {self.generation}")
            return
        try:
            await self.storage.put(self.generation, CacheEntry(key=key, response=response.copy()))
        except StorageError as e:
            self.logger.warning(f"Store write failed for {key} in {self.generation}, skipping: {e}")

    def _outcome(self, key: str, source: str, response: Response) -> Response:
        log_strategy_outcome(self.logger, self.name.value, key, source, response.status)
        return response

    @abstractmethod
    async def serve(self, request: RequestDescriptor) -> Response:
        """Serve *request*, never raising for network or store failures."""


class CacheFirstStrategy(CachingStrategy):
    """Serve from the static generation, falling back to the network."""

    name = Strategy.CACHE_FIRST

    async def serve(self, request: RequestDescriptor) -> Response:
        """
        Serve *request* cache-first.

        - Hit: the stored response is returned and no fetch is made.
        - Miss: fetch; a 2xx response is stored before it is returned,
          any other status is returned as-is.
        - Network failure on a miss: synthetic 503, never stored.
        """
        key = request.cache_key

        cached = await self._lookup(key)
        if cached is not None:
            return self._outcome(key, "cache", cached)

        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as e:
            self.logger.info(f"Network unavailable for {key}: {e}")
            return self._outcome(key, "synthetic", cache_first_offline_response())

        if response.ok:
            await self._store(key, response)
        return self._outcome(key, "network", response)


class NetworkFirstStrategy(CachingStrategy):
    """Serve from the network, falling back to the dynamic generation."""

    name = Strategy.NETWORK_FIRST

    def __init__(
        self,
        storage: StorageBackend,
        fetcher: NetworkFetcher,
        generation: str,
        shell_key: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        is_current: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            storage: Store backend
            fetcher: Network fetcher
            generation: Name of the dynamic generation
            shell_key: Canonical key of the pinned application shell document
            logger: Structured logger; defaults to the module logger
            is_current: Returns False once the owning version is no longer active
        """
        super().__init__(storage, fetcher, generation, logger, is_current)
        self.shell_key = shell_key

    async def serve(self, request: RequestDescriptor) -> Response:
        """
        Serve *request* network-first.

        Fallback chain on network failure: cached entry for the request,
        then the shell document for navigations, then a synthetic 503.
        """
        key = request.cache_key

        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as e:
            self.logger.info(f"Network unavailable for {key}, trying store: {e}")
            return await self._fallback(request, key)

        if response.ok:
            await self._store(key, response)
        return self._outcome(key, "network", response)

    async def _fallback(self, request: RequestDescriptor, key: str) -> Response:
        cached = await self._lookup(key)
        if cached is not None:
            return self._outcome(key, "cache", cached)

        if request.navigation:
            shell = await self._lookup(self.shell_key)
            if shell is not None:
                return self._outcome(key, "shell", shell)

        return self._outcome(key, "synthetic", network_first_offline_response())
