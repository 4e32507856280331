"""Network fetchers for Stashgate."""

from stashgate.network.fetcher import AiohttpFetcher, NetworkFetcher

__all__ = ["AiohttpFetcher", "NetworkFetcher"]
