"""
Core primitives for Stashgate.

This module contains the data model and the request classifier:
- Request descriptors, responses and cache entries
- Classification, strategy and lifecycle enums
- Generation naming
"""

from stashgate.core.classifier import classify, strategy_for
from stashgate.core.models import (
    CacheEntry,
    Classification,
    GenerationNames,
    LifecycleState,
    RequestDescriptor,
    ResourceKind,
    Response,
    Strategy,
    canonical_key,
)

__all__ = [
    "CacheEntry",
    "Classification",
    "GenerationNames",
    "LifecycleState",
    "RequestDescriptor",
    "ResourceKind",
    "Response",
    "Strategy",
    "canonical_key",
    "classify",
    "strategy_for",
]
