"""
Lifecycle controller for one deployed gateway version.

Manages the versioned generations of the store at two fixed points:

- install: fetch the asset manifest and populate the static generation,
  all-or-nothing
- activate: delete every generation that does not belong to this version,
  then claim all open clients

State machine::

    uninstalled -> installing -> installed-waiting -> active -> redundant
                       ^  |
                       +--+ (failed install, retry allowed)
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import structlog

from stashgate.core.models import (
    CacheEntry,
    GenerationNames,
    LifecycleState,
    RequestDescriptor,
    Response,
)
from stashgate.exceptions import InstallError, LifecycleError, NetworkError, StorageError
from stashgate.gateway.clients import ClientRegistry
from stashgate.logging_config import get_logger, log_cleanup_failure, log_install_failure
from stashgate.network.fetcher import NetworkFetcher
from stashgate.storage.base import StorageBackend

logger = get_logger(__name__)


@dataclass
class ActivationResult:
    """
    Outcome of an activation.

    Attributes:
        deleted: Stale generations that were deleted
        failed: Stale generations whose deletion failed
        claimed: Number of clients claimed
    """
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    claimed: int = 0


class LifecycleController:
    """
    Installs and activates one gateway version.

    install() and activate() are serialized through the client registry's
    lifecycle lock, so concurrent install attempts for the same origin never
    interleave with generation cleanup.
    """

    def __init__(
        self,
        names: GenerationNames,
        storage: StorageBackend,
        fetcher: NetworkFetcher,
        clients: ClientRegistry,
        asset_manifest: Sequence[str],
        origin: str,
        skip_waiting: bool = False,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        """
        Initialize LifecycleController.

        Args:
            names: Generation names of the version being deployed
            storage: Store backend
            fetcher: Network fetcher used for the asset manifest
            clients: Client registry of the origin
            asset_manifest: Ordered keys to populate the static generation with
            origin: Origin the manifest keys are resolved against
            skip_waiting: Activate immediately after install
            logger: Structured logger; defaults to the module logger
        """
        self.names = names
        self.storage = storage
        self.fetcher = fetcher
        self.clients = clients
        self.asset_manifest = list(asset_manifest)
        self.origin = origin
        self.skip_waiting = skip_waiting
        self.logger = logger if logger is not None else get_logger(__name__)
        self._state = LifecycleState.UNINSTALLED

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def version(self) -> str:
        return self.names.version

    def _set_state(self, state: LifecycleState) -> None:
        if state is not self._state:
            self.logger.info(
                "lifecycle_transition",
                version=self.version,
                from_state=self._state.value,
                to_state=state.value,
            )
        self._state = state

    def mark_redundant(self) -> None:
        """Called by the client registry when a newer controller takes over."""
        self._set_state(LifecycleState.REDUNDANT)

    async def install(self) -> None:
        """
        Install this version.

        Every manifest key is fetched before anything is written, so a failed
        fetch leaves the static generation untouched. Installing a version
        that is already installed or active is a no-op.

        Raises:
            InstallError: If a manifest fetch or a store write fails; the
                controller stays in INSTALLING and install() may be retried
            LifecycleError: If the controller is redundant
        """
        async with self.clients.lifecycle_lock:
            if self._state in (LifecycleState.INSTALLED_WAITING, LifecycleState.ACTIVE):
                self.logger.debug(f"Version {self.version} already installed, skipping")
                return
            if self._state is LifecycleState.REDUNDANT:
                raise LifecycleError(f"Cannot install redundant gateway version {self.version}")

            self._set_state(LifecycleState.INSTALLING)

            entries = await self._fetch_manifest()
            await self._write_static(entries)

            self._set_state(LifecycleState.INSTALLED_WAITING)
            self.logger.info(
                f"Installed version {self.version}: "
                f"{len(entries)} assets in {self.names.static}"
            )

        if self.skip_waiting or self.clients.active is None:
            await self.activate()
        else:
            self.clients.set_waiting(self)

    def _manifest_requests(self) -> List[RequestDescriptor]:
        return [RequestDescriptor(url=asset).resolve(self.origin) for asset in self.asset_manifest]

    async def _fetch_manifest(self) -> List[CacheEntry]:
        entries: List[CacheEntry] = []

        for request in self._manifest_requests():
            try:
                response: Response = await self.fetcher.fetch(request)
            except NetworkError as e:
                log_install_failure(self.logger, self.version, str(e), failed_key=request.cache_key)
                raise InstallError(
                    f"Failed to fetch {request.url} while installing {self.version}: {e}",
                    version=self.version,
                    failed_key=request.cache_key,
                ) from e

            if not response.ok:
                reason = f"status {response.status}"
                log_install_failure(self.logger, self.version, reason, failed_key=request.cache_key)
                raise InstallError(
                    f"Failed to fetch {request.url} while installing {self.version}: {reason}",
                    version=self.version,
                    failed_key=request.cache_key,
                )

            entries.append(CacheEntry(key=request.cache_key, response=response.copy()))

        return entries

    async def _write_static(self, entries: List[CacheEntry]) -> None:
        static = self.names.static
        existed = False
        try:
            existed = await self.storage.has(static)
            await self.storage.open(static)
            for entry in entries:
                await self.storage.put(static, entry)
        except StorageError as e:
            log_install_failure(self.logger, self.version, f"store failure: {e}")
            if not existed:
                try:
                    await self.storage.delete(static)
                except StorageError as cleanup_error:
                    log_cleanup_failure(self.logger, static, str(cleanup_error))
            raise InstallError(
                f"Failed to write {static} while installing {self.version}: {e}",
                version=self.version,
            ) from e

    async def activate(self) -> ActivationResult:
        """
        Activate this version.

        Deletes every generation not belonging to this version, each deletion
        independent of the others, and only then claims all open clients.

        Returns:
            ActivationResult describing the cleanup

        Raises:
            LifecycleError: If the version has not been installed
        """
        async with self.clients.lifecycle_lock:
            if self._state is LifecycleState.ACTIVE:
                return ActivationResult()
            if self._state is not LifecycleState.INSTALLED_WAITING:
                raise LifecycleError(
                    f"Cannot activate version {self.version} from state {self._state.value}"
                )

            result = await self._cleanup()

            self._set_state(LifecycleState.ACTIVE)
            result.claimed = self.clients.claim(self)

            self.logger.info(
                "gateway_activated",
                version=self.version,
                deleted=result.deleted,
                failed=result.failed,
                claimed=result.claimed,
            )
            return result

    async def _cleanup(self) -> ActivationResult:
        result = ActivationResult()
        current = self.names.current()

        try:
            names = await self.storage.list_names()
        except StorageError as e:
            log_cleanup_failure(self.logger, "*", f"enumeration failed: {e}")
            return result

        for name in names:
            if name in current:
                continue
            try:
                await self.storage.delete(name)
            except StorageError as e:
                log_cleanup_failure(self.logger, name, str(e))
                result.failed.append(name)
            else:
                self.logger.info(f"Deleted stale generation {name}")
                result.deleted.append(name)

        return result

    async def restore(self) -> Optional[ActivationResult]:
        """
        Resume a version whose static generation already exists in the store.

        Used after a process restart against a durable store: the manifest is
        not fetched again, but stale generations are still cleaned up. A static
        generation missing any manifest key (an interrupted install) is not
        promoted.

        Returns:
            ActivationResult if the controller is now active, None if this
            version has not been completely installed in the store
        """
        if self._state is LifecycleState.ACTIVE:
            return ActivationResult()
        if self._state is not LifecycleState.UNINSTALLED:
            return None

        static = self.names.static
        try:
            if not await self.storage.has(static):
                return None
            stored = set(await self.storage.keys(static))
        except StorageError as e:
            self.logger.warning(f"Could not check for {static}: {e}")
            return None

        missing = [r.cache_key for r in self._manifest_requests() if r.cache_key not in stored]
        if missing:
            self.logger.warning(
                "incomplete_static_generation",
                generation=static,
                missing=missing,
            )
            return None

        self._set_state(LifecycleState.INSTALLED_WAITING)
        return await self.activate()
