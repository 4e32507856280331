"""
Stashgate - Client-resident request-interception caching gateway.

Stashgate sits between an application and the network, serves requests from a
versioned local store or the network according to per-request caching strategies,
and keeps the store consistent across application upgrades.
"""

from stashgate._version import __version__

__all__ = ["__version__"]
