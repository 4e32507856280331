"""
Open application clients for one origin.

A client is an open session of the host application (a window or tab). The
registry records which lifecycle controller currently controls each client,
which controller is active for the origin, and which one is installed and
waiting to take over.
"""

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from stashgate.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Client:
    """
    An open application session.

    Attributes:
        client_id: Registry-assigned identifier
        url: URL the client currently shows
        controller: Lifecycle controller handling this client's requests, if any
        focused: Whether the client was most recently focused
    """
    client_id: str
    url: str
    controller: Optional[Any] = None
    focused: bool = False


class ClientRegistry:
    """
    Tracks clients and the active/waiting controllers of one origin.

    Controllers register themselves through claim() and set_waiting(); the
    registry triggers activation of a waiting controller once the last
    client of the active controller has closed.
    """

    def __init__(self):
        self._clients: Dict[str, Client] = {}
        self._ids = itertools.count(1)
        self.active: Optional[Any] = None
        self.waiting: Optional[Any] = None
        # Serializes install and activate across all controllers of the origin
        self.lifecycle_lock = asyncio.Lock()

    def connect(self, url: str) -> Client:
        """Open a new client; it is controlled by the active controller."""
        client = Client(client_id=f"client-{next(self._ids)}", url=url, controller=self.active)
        self._clients[client.client_id] = client
        logger.debug(f"Client connected: {client.client_id} at {url}")
        return client

    def get(self, client_id: str) -> Optional[Client]:
        return self._clients.get(client_id)

    def all(self) -> List[Client]:
        return list(self._clients.values())

    def controlled_by(self, controller: Any) -> List[Client]:
        return [c for c in self._clients.values() if c.controller is controller]

    async def close(self, client_id: str) -> None:
        """
        Close a client.

        When this was the last client controlled by the active controller and
        a controller is waiting, the waiting controller activates.
        """
        client = self._clients.pop(client_id, None)
        if client is None:
            return
        logger.debug(f"Client closed: {client_id}")

        if self.waiting is not None and not self.controlled_by(self.active):
            logger.info("Last client of the active gateway closed, activating waiting gateway")
            await self.waiting.activate()

    def set_waiting(self, controller: Any) -> None:
        self.waiting = controller

    def claim(self, controller: Any) -> int:
        """
        Make *controller* the active controller and take over every client.

        The previously active controller, if any, is marked redundant.

        Returns:
            Number of clients claimed
        """
        previous = self.active
        self.active = controller
        if self.waiting is controller:
            self.waiting = None

        for client in self._clients.values():
            client.controller = controller

        if previous is not None and previous is not controller:
            previous.mark_redundant()

        logger.info(f"Claimed {len(self._clients)} clients")
        return len(self._clients)

    def open_window(self, url: str) -> Client:
        """Focus a client already showing *url*, or open a new one."""
        for client in self._clients.values():
            client.focused = False

        for client in self._clients.values():
            if client.url == url:
                client.focused = True
                return client

        client = self.connect(url)
        client.focused = True
        return client
