"""
Strategy router.

Single entry point for intercepted GET requests: classifies the request and
delegates to the cache-first or network-first strategy.
"""

from typing import Callable, Dict, Optional

import structlog

from stashgate.core.classifier import DEFAULT_API_PREFIX, classify, strategy_for
from stashgate.core.models import GenerationNames, RequestDescriptor, Response, Strategy
from stashgate.gateway.strategies import CacheFirstStrategy, CachingStrategy, NetworkFirstStrategy
from stashgate.logging_config import get_logger
from stashgate.network.fetcher import NetworkFetcher
from stashgate.storage.base import StorageBackend

logger = get_logger(__name__)


class StrategyRouter:
    """
    Routes requests to caching strategies by classification.

    static-asset requests go to the cache-first strategy; api, navigation
    and other requests go to the network-first strategy.
    """

    def __init__(
        self,
        cache_first: CacheFirstStrategy,
        network_first: NetworkFirstStrategy,
        api_prefix: str = DEFAULT_API_PREFIX,
    ):
        self.api_prefix = api_prefix
        self._strategies: Dict[Strategy, CachingStrategy] = {
            Strategy.CACHE_FIRST: cache_first,
            Strategy.NETWORK_FIRST: network_first,
        }

    @classmethod
    def for_generations(
        cls,
        storage: StorageBackend,
        fetcher: NetworkFetcher,
        names: GenerationNames,
        shell_key: str,
        api_prefix: str = DEFAULT_API_PREFIX,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        is_current: Optional[Callable[[], bool]] = None,
    ) -> "StrategyRouter":
        """
        Build a router whose strategies use the current generations of *names*.

        Args:
            storage: Store backend shared by both strategies
            fetcher: Network fetcher shared by both strategies
            names: Current generation names
            shell_key: Canonical key of the pinned application shell
            api_prefix: Path prefix of the API namespace
            logger: Optional structured logger injected into both strategies
            is_current: Whether the owning version is still active; both
                strategies stop writing once it returns False
        """
        return cls(
            cache_first=CacheFirstStrategy(
                storage, fetcher, names.static, logger=logger, is_current=is_current
            ),
            network_first=NetworkFirstStrategy(
                storage, fetcher, names.dynamic, shell_key=shell_key, logger=logger,
                is_current=is_current,
            ),
            api_prefix=api_prefix,
        )

    def strategy_for(self, request: RequestDescriptor) -> CachingStrategy:
        return self._strategies[strategy_for(classify(request, self.api_prefix))]

    async def route(self, request: RequestDescriptor) -> Response:
        """
        Serve a GET request through its strategy.

        The caller must not route non-GET requests here.
        """
        strategy = self.strategy_for(request)
        logger.debug(f"Routing {request.cache_key} via {strategy.name.value}")
        return await strategy.serve(request)
