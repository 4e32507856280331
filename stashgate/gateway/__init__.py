"""
Gateway module for Stashgate.

This module provides request interception and caching through:
- Cache-first and network-first strategies
- Strategy routing by request classification
- Versioned generation lifecycle (install, activate, cleanup, claim)
- Control channel for host application commands
- Push notification dispatch
"""

from stashgate.gateway.clients import Client, ClientRegistry
from stashgate.gateway.control import ControlChannel, ControlCommand
from stashgate.gateway.gateway import EventKind, Gateway
from stashgate.gateway.lifecycle import ActivationResult, LifecycleController
from stashgate.gateway.notifications import (
    Notification,
    NotificationAction,
    NotificationCenter,
    NotificationDispatcher,
    NotificationSurface,
)
from stashgate.gateway.router import StrategyRouter
from stashgate.gateway.strategies import (
    CacheFirstStrategy,
    NetworkFirstStrategy,
    cache_first_offline_response,
    network_first_offline_response,
)

__all__ = [
    "Client",
    "ClientRegistry",
    "ControlChannel",
    "ControlCommand",
    "EventKind",
    "Gateway",
    "ActivationResult",
    "LifecycleController",
    "Notification",
    "NotificationAction",
    "NotificationCenter",
    "NotificationDispatcher",
    "NotificationSurface",
    "StrategyRouter",
    "CacheFirstStrategy",
    "NetworkFirstStrategy",
    "cache_first_offline_response",
    "network_first_offline_response",
]
