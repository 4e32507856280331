"""
Gateway: one deployed gateway version and its explicit event dispatch table.

All events the host environment delivers (install, activate, fetch, message,
push, notification click, background sync) go through Gateway.dispatch(),
which maps each event kind to exactly one handler owned by this instance.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from stashgate.config import GatewayConfig
from stashgate.core.models import GenerationNames, LifecycleState, RequestDescriptor, Response, canonical_key
from stashgate.gateway.clients import ClientRegistry
from stashgate.gateway.control import ControlChannel
from stashgate.gateway.lifecycle import ActivationResult, LifecycleController
from stashgate.gateway.notifications import (
    Notification,
    NotificationCenter,
    NotificationDispatcher,
    NotificationSurface,
)
from stashgate.gateway.router import StrategyRouter
from stashgate.logging_config import clear_correlation_id, get_logger, set_correlation_id
from stashgate.network.fetcher import AiohttpFetcher, NetworkFetcher
from stashgate.storage import create_storage
from stashgate.storage.base import StorageBackend

logger = get_logger(__name__)

SyncHandler = Callable[[], Awaitable[None]]


class EventKind(str, Enum):
    """
    Events accepted by Gateway.dispatch, with their payloads:

    - install, activate: none
    - fetch: RequestDescriptor
    - message: control message dict
    - push: push payload bytes or text, None for an empty push
    - notificationclick: action string, or an (action, Notification) tuple
    - sync: sync tag
    """

    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    MESSAGE = "message"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"
    SYNC = "sync"


class Gateway:
    """
    Request-interception caching gateway for one application version.

    Owns the strategy router, lifecycle controller, control channel and
    notification dispatcher of that version. Storage and fetcher passed in by
    the caller stay owned by the caller; ones created here are released by
    close().
    """

    def __init__(
        self,
        config: GatewayConfig,
        storage: Optional[StorageBackend] = None,
        fetcher: Optional[NetworkFetcher] = None,
        clients: Optional[ClientRegistry] = None,
        surface: Optional[NotificationSurface] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        """
        Initialize Gateway.

        Args:
            config: Gateway configuration
            storage: Store backend (default: created from config.storage)
            fetcher: Network fetcher (default: AiohttpFetcher from config.network)
            clients: Client registry of the origin (default: a new registry)
            surface: Notification surface (default: NotificationCenter)
            logger: Structured logger injected into all components
        """
        self.config = config
        self.logger = logger if logger is not None else get_logger(__name__)
        self.names = GenerationNames(config.app_name, config.version)

        self._owns_storage = storage is None
        self._owns_fetcher = fetcher is None
        self.storage = storage if storage is not None else create_storage(config.storage)
        self.fetcher = fetcher if fetcher is not None else AiohttpFetcher(
            origin=config.origin,
            timeout_seconds=config.network.timeout_seconds,
            max_connections=config.network.max_connections,
        )
        self.clients = clients if clients is not None else ClientRegistry()
        self.surface = surface if surface is not None else NotificationCenter()

        self.shell_url = self._absolute(config.root_url)
        self.router = StrategyRouter.for_generations(
            self.storage,
            self.fetcher,
            self.names,
            shell_key=canonical_key(self.shell_url),
            api_prefix=config.api_prefix,
            logger=self.logger,
            is_current=lambda: self.lifecycle.state is LifecycleState.ACTIVE,
        )
        self.lifecycle = LifecycleController(
            names=self.names,
            storage=self.storage,
            fetcher=self.fetcher,
            clients=self.clients,
            asset_manifest=config.asset_manifest,
            origin=config.origin,
            skip_waiting=config.skip_waiting,
            logger=self.logger,
        )
        self.control = ControlChannel(self.lifecycle)
        self.notifications = NotificationDispatcher(
            config.notifications, self.surface, self.clients, self.shell_url
        )

        self._sync_handlers: Dict[str, SyncHandler] = {}
        self._handlers: Dict[EventKind, Callable[[Any], Awaitable[Any]]] = {
            EventKind.INSTALL: self._on_install,
            EventKind.ACTIVATE: self._on_activate,
            EventKind.FETCH: self._on_fetch,
            EventKind.MESSAGE: self._on_message,
            EventKind.PUSH: self._on_push,
            EventKind.NOTIFICATION_CLICK: self._on_notification_click,
            EventKind.SYNC: self._on_sync,
        }
        self._closed = False

        self.logger.info(f"Gateway created: version={config.version}, origin={config.origin}")

    def _absolute(self, url: str) -> str:
        return RequestDescriptor(url=url).resolve(self.config.origin).url

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    async def dispatch(self, kind: EventKind, payload: Any = None) -> Any:
        """
        Deliver one event to its handler.

        Args:
            kind: Event kind
            payload: Event-specific payload

        Returns:
            Whatever the handler returns (a Response for fetch events)
        """
        if self._closed:
            raise RuntimeError("Gateway is closed")
        handler = self._handlers[EventKind(kind)]
        return await handler(payload)

    # Handlers

    async def _on_install(self, payload: Any) -> None:
        await self.lifecycle.install()

    async def _on_activate(self, payload: Any) -> ActivationResult:
        return await self.lifecycle.activate()

    async def _on_fetch(self, request: RequestDescriptor) -> Response:
        request = request.resolve(self.config.origin)

        if not request.is_get or self.lifecycle.state is not LifecycleState.ACTIVE:
            # Not intercepted: errors propagate to the caller untouched
            return await self.fetcher.fetch(request)

        set_correlation_id()
        try:
            return await self.router.route(request)
        finally:
            clear_correlation_id()

    async def _on_message(self, message: Any) -> bool:
        return await self.control.handle(message)

    async def _on_push(self, raw_payload: Any) -> Optional[Notification]:
        return self.notifications.on_push(raw_payload)

    async def _on_notification_click(self, payload: Any) -> None:
        if isinstance(payload, str):
            action, notification = payload, None
        else:
            action, notification = payload
        self.notifications.on_notification_click(action, notification)

    async def _on_sync(self, tag: str) -> bool:
        handler = self._sync_handlers.get(tag)
        if handler is None:
            self.logger.info(f"No handler registered for sync tag {tag!r}")
            return False
        self.logger.info(f"Running background sync {tag!r}")
        try:
            await handler()
        except Exception as e:
            self.logger.error(f"Background sync {tag!r} failed: {e}", exc_info=True)
            raise
        return True

    # Convenience wrappers

    def register_sync(self, tag: str, handler: SyncHandler) -> None:
        """Register the coroutine function run for background sync *tag*."""
        self._sync_handlers[tag] = handler

    async def install(self) -> None:
        await self.dispatch(EventKind.INSTALL)

    async def activate(self) -> ActivationResult:
        return await self.dispatch(EventKind.ACTIVATE)

    async def handle_fetch(self, request: RequestDescriptor) -> Response:
        return await self.dispatch(EventKind.FETCH, request)

    async def post_message(self, message: Any) -> bool:
        return await self.dispatch(EventKind.MESSAGE, message)

    async def push(self, raw_payload: Any) -> Optional[Notification]:
        return await self.dispatch(EventKind.PUSH, raw_payload)

    async def notification_click(self, action: str, notification: Optional[Notification] = None) -> None:
        await self.dispatch(EventKind.NOTIFICATION_CLICK, (action, notification))

    async def sync(self, tag: str) -> bool:
        return await self.dispatch(EventKind.SYNC, tag)

    async def start(self) -> None:
        """
        Bring the gateway up: resume from an already installed static
        generation, otherwise run a full install.
        """
        if await self.lifecycle.restore() is None:
            await self.install()

    async def close(self) -> None:
        """Release owned resources. Further dispatches raise RuntimeError."""
        if self._closed:
            return
        self._closed = True
        if self._owns_fetcher:
            await self.fetcher.close()
        if self._owns_storage:
            await self.storage.close()
        self.logger.info(f"Gateway closed: version={self.config.version}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
