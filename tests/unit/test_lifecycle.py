"""
Unit tests for the lifecycle controller.

Tests install atomicity, activation cleanup, client claiming and the
waiting/natural activation path.
"""

import asyncio

import pytest

from stashgate.core.models import CacheEntry, GenerationNames, LifecycleState, Response
from stashgate.exceptions import InstallError, LifecycleError
from stashgate.gateway.lifecycle import ActivationResult, LifecycleController
from stashgate.storage import MemoryStorageBackend
from tests.fakes import ORIGIN, key_for

MANIFEST = ["/", "/manifest.json", "/icons/icon-192.png", "/icons/icon-512.png"]


def make_controller(storage, fetcher, clients, version="v2", **kwargs) -> LifecycleController:
    return LifecycleController(
        names=GenerationNames("material-collector", version),
        storage=storage,
        fetcher=fetcher,
        clients=clients,
        asset_manifest=kwargs.pop("asset_manifest", MANIFEST),
        origin=ORIGIN,
        **kwargs,
    )


async def seed(storage, *generations):
    for name in generations:
        await storage.put(name, CacheEntry(key_for("/old"), Response(status=200, body=b"old")))


async def seed_static(storage, generation, paths=MANIFEST):
    for path in paths:
        await storage.put(generation, CacheEntry(key_for(path), Response(status=200, body=b"stored")))


class TestInstall:
    """Test install."""

    @pytest.mark.asyncio
    async def test_install_populates_static_generation(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()

        keys = await storage.keys("material-collector-static-v2")
        assert sorted(keys) == sorted(key_for(path) for path in MANIFEST)
        icon = await storage.get("material-collector-static-v2", key_for("/icons/icon-192.png"))
        assert icon.response.body == b"\x89PNG192"

    @pytest.mark.asyncio
    async def test_first_install_activates_immediately(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()

        assert controller.state is LifecycleState.ACTIVE
        assert clients.active is controller

    @pytest.mark.asyncio
    async def test_failed_fetch_writes_nothing(self, storage, manifest_fetcher, clients):
        """Third manifest fetch fails: the static generation stays absent."""
        manifest_fetcher.failing.add(f"{ORIGIN}/icons/icon-192.png")
        controller = make_controller(storage, manifest_fetcher, clients)

        with pytest.raises(InstallError) as exc_info:
            await controller.install()

        assert exc_info.value.failed_key == key_for("/icons/icon-192.png")
        assert exc_info.value.version == "v2"
        assert not await storage.has("material-collector-static-v2")
        assert controller.state is LifecycleState.INSTALLING
        assert clients.active is None

    @pytest.mark.asyncio
    async def test_non_2xx_manifest_response_fails_install(self, storage, manifest_fetcher, clients):
        manifest_fetcher.add(f"{ORIGIN}/manifest.json", "nope", status=500)
        controller = make_controller(storage, manifest_fetcher, clients)

        with pytest.raises(InstallError) as exc_info:
            await controller.install()

        assert exc_info.value.failed_key == key_for("/manifest.json")
        assert await storage.list_names() == []

    @pytest.mark.asyncio
    async def test_install_can_be_retried(self, storage, manifest_fetcher, clients):
        manifest_fetcher.failing.add(f"{ORIGIN}/icons/icon-512.png")
        controller = make_controller(storage, manifest_fetcher, clients)
        with pytest.raises(InstallError):
            await controller.install()

        manifest_fetcher.failing.clear()
        await controller.install()

        assert controller.state is LifecycleState.ACTIVE
        assert len(await storage.keys("material-collector-static-v2")) == len(MANIFEST)

    @pytest.mark.asyncio
    async def test_store_failure_removes_partial_generation(self, storage, manifest_fetcher, clients):
        storage.fail_after_puts = 2
        controller = make_controller(storage, manifest_fetcher, clients)

        with pytest.raises(InstallError):
            await controller.install()

        assert not await storage.has("material-collector-static-v2")

    @pytest.mark.asyncio
    async def test_bounded_store_too_small_fails_install(self, manifest_fetcher, clients):
        storage = MemoryStorageBackend(max_entries_per_generation=2)
        controller = make_controller(storage, manifest_fetcher, clients)

        with pytest.raises(InstallError):
            await controller.install()

        assert not await storage.has("material-collector-static-v2")
        assert controller.state is LifecycleState.INSTALLING

    @pytest.mark.asyncio
    async def test_install_is_idempotent(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()
        await controller.install()

        assert manifest_fetcher.call_count == len(MANIFEST)

    @pytest.mark.asyncio
    async def test_concurrent_installs_fetch_once(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients)

        await asyncio.gather(controller.install(), controller.install())

        assert manifest_fetcher.call_count == len(MANIFEST)
        assert controller.state is LifecycleState.ACTIVE

    @pytest.mark.asyncio
    async def test_empty_manifest(self, storage, fetcher, clients):
        controller = make_controller(storage, fetcher, clients, asset_manifest=[])

        await controller.install()

        assert await storage.has("material-collector-static-v2")
        assert await storage.keys("material-collector-static-v2") == []


class TestActivate:
    """Test activation and cleanup."""

    @pytest.mark.asyncio
    async def test_stale_generations_deleted(self, storage, manifest_fetcher, clients, names):
        await seed(
            storage,
            "material-collector-static-v1",
            "material-collector-dynamic-v1",
            "material-collector-v1",
            "material-collector-dynamic-v2",
        )
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()

        remaining = set(await storage.list_names())
        assert remaining <= names.current()
        assert remaining == {"material-collector-static-v2", "material-collector-dynamic-v2"}

    @pytest.mark.asyncio
    async def test_current_dynamic_generation_survives(self, storage, manifest_fetcher, clients):
        await seed(storage, "material-collector-dynamic-v2")
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()

        assert await storage.get("material-collector-dynamic-v2", key_for("/old")) is not None

    @pytest.mark.asyncio
    async def test_deletion_failure_is_not_fatal(self, storage, manifest_fetcher, clients):
        await seed(storage, "material-collector-static-v1", "material-collector-dynamic-v1")
        storage.fail_deletes.add("material-collector-static-v1")
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()

        assert controller.state is LifecycleState.ACTIVE
        assert await storage.has("material-collector-static-v1")
        assert not await storage.has("material-collector-dynamic-v1")

    @pytest.mark.asyncio
    async def test_activation_result(self, storage, manifest_fetcher, clients):
        await seed(storage, "material-collector-dynamic-v1")
        storage.fail_deletes.add("material-collector-dynamic-v1")
        old = make_controller(storage, manifest_fetcher, clients, version="v1")
        await old.install()
        clients.connect(f"{ORIGIN}/")
        controller = make_controller(storage, manifest_fetcher, clients)
        await controller.install()

        result = await controller.activate()

        assert result.deleted == ["material-collector-static-v1"]
        assert result.failed == ["material-collector-dynamic-v1"]
        assert result.claimed == 1

    @pytest.mark.asyncio
    async def test_claim_happens_after_cleanup(self, storage, manifest_fetcher, clients):
        await seed(storage, "material-collector-static-v1")
        events = []
        original_delete = storage.delete
        original_claim = clients.claim

        async def recording_delete(name):
            events.append(("delete", name))
            return await original_delete(name)

        def recording_claim(controller):
            events.append(("claim", controller.version))
            return original_claim(controller)

        storage.delete = recording_delete
        clients.claim = recording_claim
        controller = make_controller(storage, manifest_fetcher, clients)

        await controller.install()

        assert events == [("delete", "material-collector-static-v1"), ("claim", "v2")]

    @pytest.mark.asyncio
    async def test_activate_requires_install(self, storage, fetcher, clients):
        controller = make_controller(storage, fetcher, clients)

        with pytest.raises(LifecycleError):
            await controller.activate()

    @pytest.mark.asyncio
    async def test_activate_when_active_is_noop(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients)
        await controller.install()

        result = await controller.activate()

        assert result == ActivationResult()


class TestUpgrade:
    """Test replacing an active version with a new one."""

    @pytest.mark.asyncio
    async def test_new_version_waits_for_clients(self, storage, manifest_fetcher, clients):
        old = make_controller(storage, manifest_fetcher, clients, version="v1")
        await old.install()
        client = clients.connect(f"{ORIGIN}/")

        new = make_controller(storage, manifest_fetcher, clients, version="v2")
        await new.install()

        assert new.state is LifecycleState.INSTALLED_WAITING
        assert clients.waiting is new
        assert clients.active is old
        assert client.controller is old
        assert await storage.has("material-collector-static-v1")

    @pytest.mark.asyncio
    async def test_closing_last_client_activates_waiting(self, storage, manifest_fetcher, clients):
        old = make_controller(storage, manifest_fetcher, clients, version="v1")
        await old.install()
        first = clients.connect(f"{ORIGIN}/")
        second = clients.connect(f"{ORIGIN}/notes")
        new = make_controller(storage, manifest_fetcher, clients, version="v2")
        await new.install()

        await clients.close(first.client_id)
        assert new.state is LifecycleState.INSTALLED_WAITING

        await clients.close(second.client_id)

        assert new.state is LifecycleState.ACTIVE
        assert old.state is LifecycleState.REDUNDANT
        assert clients.active is new
        assert clients.waiting is None
        assert not await storage.has("material-collector-static-v1")

    @pytest.mark.asyncio
    async def test_skip_waiting_claims_open_clients(self, storage, manifest_fetcher, clients):
        old = make_controller(storage, manifest_fetcher, clients, version="v1")
        await old.install()
        client = clients.connect(f"{ORIGIN}/")

        new = make_controller(storage, manifest_fetcher, clients, version="v2", skip_waiting=True)
        await new.install()

        assert new.state is LifecycleState.ACTIVE
        assert client.controller is new
        assert old.state is LifecycleState.REDUNDANT

    @pytest.mark.asyncio
    async def test_redundant_controller_cannot_reinstall(self, storage, manifest_fetcher, clients):
        old = make_controller(storage, manifest_fetcher, clients, version="v1")
        await old.install()
        new = make_controller(storage, manifest_fetcher, clients, version="v2", skip_waiting=True)
        await new.install()

        with pytest.raises(LifecycleError):
            await old.install()


class TestRestore:
    """Test resuming from an installed static generation."""

    @pytest.mark.asyncio
    async def test_restore_without_install(self, storage, fetcher, clients):
        controller = make_controller(storage, fetcher, clients)

        assert await controller.restore() is None
        assert controller.state is LifecycleState.UNINSTALLED

    @pytest.mark.asyncio
    async def test_restore_activates_without_fetching(self, storage, fetcher, clients):
        await seed_static(storage, "material-collector-static-v2")
        await seed(storage, "material-collector-static-v1")
        controller = make_controller(storage, fetcher, clients)

        result = await controller.restore()

        assert result.deleted == ["material-collector-static-v1"]
        assert controller.state is LifecycleState.ACTIVE
        assert fetcher.call_count == 0

    @pytest.mark.asyncio
    async def test_restore_when_active(self, storage, manifest_fetcher, clients):
        controller = make_controller(storage, manifest_fetcher, clients)
        await controller.install()

        assert await controller.restore() == ActivationResult()

    @pytest.mark.asyncio
    async def test_partial_static_generation_is_not_restored(self, storage, fetcher, clients):
        await seed_static(storage, "material-collector-static-v2", paths=["/"])
        controller = make_controller(storage, fetcher, clients)

        assert await controller.restore() is None
        assert controller.state is LifecycleState.UNINSTALLED
        assert clients.active is None

    @pytest.mark.asyncio
    async def test_install_completes_partial_static_generation(self, storage, manifest_fetcher, clients):
        await seed_static(storage, "material-collector-static-v2", paths=["/"])
        controller = make_controller(storage, manifest_fetcher, clients)

        assert await controller.restore() is None
        await controller.install()

        keys = await storage.keys("material-collector-static-v2")
        assert sorted(keys) == sorted(key_for(path) for path in MANIFEST)
        assert controller.state is LifecycleState.ACTIVE

    @pytest.mark.asyncio
    async def test_restore_ignores_extra_keys(self, storage, fetcher, clients):
        await seed_static(storage, "material-collector-static-v2", paths=MANIFEST + ["/app.js"])
        controller = make_controller(storage, fetcher, clients)

        assert await controller.restore() == ActivationResult()
        assert controller.state is LifecycleState.ACTIVE
