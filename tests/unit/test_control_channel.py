"""
Unit tests for the control channel.
"""

import pytest
import pytest_asyncio

from stashgate.core.models import GenerationNames, LifecycleState
from stashgate.gateway.control import ControlChannel, ControlCommand
from stashgate.gateway.lifecycle import LifecycleController
from tests.fakes import ORIGIN


def make_controller(storage, fetcher, clients, version):
    return LifecycleController(
        names=GenerationNames("material-collector", version),
        storage=storage,
        fetcher=fetcher,
        clients=clients,
        asset_manifest=["/", "/manifest.json"],
        origin=ORIGIN,
    )


@pytest_asyncio.fixture
async def waiting(storage, manifest_fetcher, clients):
    """A v2 controller installed and waiting behind an active v1 with one open client."""
    old = make_controller(storage, manifest_fetcher, clients, "v1")
    await old.install()
    clients.connect(f"{ORIGIN}/")
    new = make_controller(storage, manifest_fetcher, clients, "v2")
    await new.install()
    assert new.state is LifecycleState.INSTALLED_WAITING
    return new


class TestParse:
    """Test message parsing."""

    def test_force_activate(self):
        assert ControlChannel.parse({"type": "force-activate"}) is ControlCommand.FORCE_ACTIVATE

    @pytest.mark.parametrize("message", [
        None,
        "force-activate",
        ["force-activate"],
        {},
        {"type": "reload"},
        {"type": None},
        {"kind": "force-activate"},
    ])
    def test_unrecognized(self, message):
        assert ControlChannel.parse(message) is None


class TestHandle:
    """Test message handling."""

    @pytest.mark.asyncio
    async def test_force_activate_waiting_controller(self, waiting, clients, storage):
        channel = ControlChannel(waiting)

        assert await channel.handle({"type": "force-activate"}) is True

        assert waiting.state is LifecycleState.ACTIVE
        assert clients.active is waiting
        assert all(c.controller is waiting for c in clients.all())
        assert not await storage.has("material-collector-static-v1")

    @pytest.mark.asyncio
    async def test_unknown_message_ignored(self, waiting):
        channel = ControlChannel(waiting)

        assert await channel.handle({"type": "something-else"}) is False
        assert waiting.state is LifecycleState.INSTALLED_WAITING

    @pytest.mark.asyncio
    async def test_force_activate_when_active_is_ignored(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients, "v2")
        await controller.install()

        assert await ControlChannel(controller).handle({"type": "force-activate"}) is False
        assert controller.state is LifecycleState.ACTIVE

    @pytest.mark.asyncio
    async def test_force_activate_before_install_is_ignored(self, storage, fetcher, clients):
        controller = make_controller(storage, fetcher, clients, "v2")

        assert await ControlChannel(controller).handle({"type": "force-activate"}) is False
        assert controller.state is LifecycleState.UNINSTALLED
