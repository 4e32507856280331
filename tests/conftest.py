"""
Shared fixtures for Stashgate tests.
"""

import pytest

from stashgate.config import GatewayConfig, StorageConfig
from stashgate.core.models import GenerationNames
from stashgate.gateway.clients import ClientRegistry
from tests.fakes import ORIGIN, FakeFetcher, FlakyStorage


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def storage():
    return FlakyStorage()


@pytest.fixture
def clients():
    return ClientRegistry()


@pytest.fixture
def names():
    return GenerationNames("material-collector", "v2")


@pytest.fixture
def config():
    return GatewayConfig(
        app_name="material-collector",
        version="v2",
        origin=ORIGIN,
        asset_manifest=["/", "/manifest.json", "/icons/icon-192.png", "/icons/icon-512.png"],
        storage=StorageConfig(backend="memory"),
    )


@pytest.fixture
def manifest_fetcher(fetcher):
    """Fetcher able to serve the whole asset manifest."""
    fetcher.add(f"{ORIGIN}/", "<html>shell</html>", headers={"Content-Type": "text/html"})
    fetcher.add(f"{ORIGIN}/manifest.json", '{"name": "app"}', headers={"Content-Type": "application/json"})
    fetcher.add(f"{ORIGIN}/icons/icon-192.png", b"\x89PNG192", headers={"Content-Type": "image/png"})
    fetcher.add(f"{ORIGIN}/icons/icon-512.png", b"\x89PNG512", headers={"Content-Type": "image/png"})
    return fetcher
