"""
Request classification.

Maps a request descriptor to the class that selects its caching strategy.
"""

from stashgate.core.models import (
    STATIC_RESOURCE_KINDS,
    Classification,
    RequestDescriptor,
    Strategy,
)

DEFAULT_API_PREFIX = "/api/"


def classify(request: RequestDescriptor, api_prefix: str = DEFAULT_API_PREFIX) -> Classification:
    """
    Classify a request.

    Rules, first match wins:
    1. URL path under the API namespace -> API
    2. style/script/image/font resources -> STATIC_ASSET
    3. navigation requests -> NAVIGATION
    4. anything else -> OTHER

    Args:
        request: The request to classify
        api_prefix: Path prefix of the API namespace

    Returns:
        Classification of the request
    """
    if request.path.startswith(api_prefix):
        return Classification.API
    if request.kind in STATIC_RESOURCE_KINDS:
        return Classification.STATIC_ASSET
    if request.navigation:
        return Classification.NAVIGATION
    return Classification.OTHER


def strategy_for(classification: Classification) -> Strategy:
    """Static assets are served cache-first; everything else network-first."""
    if classification is Classification.STATIC_ASSET:
        return Strategy.CACHE_FIRST
    return Strategy.NETWORK_FIRST
