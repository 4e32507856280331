"""
Push notification dispatch.

Turns push payloads into notifications and routes notification clicks.
Push delivery is fire-and-forget: a malformed payload is dropped without a
notification and without an error reaching the push transport.
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from stashgate.config import NotificationConfig
from stashgate.gateway.clients import ClientRegistry
from stashgate.logging_config import get_logger, log_push_dropped

logger = get_logger(__name__)

VIEW_ACTION = "view"
CLOSE_ACTION = "close"


@dataclass(frozen=True)
class NotificationAction:
    action: str
    title: str


@dataclass
class Notification:
    """
    A user-visible notification.

    Attributes:
        title: Notification title
        body: Notification body text
        icon: Icon reference
        badge: Badge reference
        vibrate: Vibration pattern in milliseconds
        timestamp: Arrival time in milliseconds since the epoch
        primary_key: Fixed key identifying the notification kind
        actions: Available actions
    """
    title: str
    body: str
    icon: str
    badge: str
    vibrate: List[int]
    timestamp: int
    primary_key: int
    actions: List[NotificationAction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "vibrate": list(self.vibrate),
            "data": {
                "dateOfArrival": self.timestamp,
                "primaryKey": self.primary_key,
            },
            "actions": [{"action": a.action, "title": a.title} for a in self.actions],
        }


class NotificationSurface(ABC):
    """Where notifications are shown to the user."""

    @abstractmethod
    def show(self, notification: Notification) -> None:
        """Display a notification."""

    @abstractmethod
    def close(self, notification: Notification) -> None:
        """Dismiss a notification."""


class NotificationCenter(NotificationSurface):
    """In-process surface that keeps the currently shown notifications."""

    def __init__(self):
        self.shown: List[Notification] = []

    def show(self, notification: Notification) -> None:
        self.shown.append(notification)
        logger.info(f"Notification shown: {notification.title}")

    def close(self, notification: Notification) -> None:
        if notification in self.shown:
            self.shown.remove(notification)


class NotificationDispatcher:
    """Builds notifications from push payloads and handles clicks."""

    def __init__(
        self,
        config: NotificationConfig,
        surface: NotificationSurface,
        clients: ClientRegistry,
        root_url: str,
    ):
        """
        Args:
            config: Notification defaults
            surface: Surface notifications are shown on
            clients: Client registry used to open the application
            root_url: URL opened by the "view" action
        """
        self.config = config
        self.surface = surface
        self.clients = clients
        self.root_url = root_url

    def build(self, payload: Dict[str, Any]) -> Notification:
        title = payload.get("title")
        body = payload.get("body")
        return Notification(
            title=title if isinstance(title, str) and title else self.config.default_title,
            body=body if isinstance(body, str) and body else self.config.default_body,
            icon=self.config.icon,
            badge=self.config.badge,
            vibrate=list(self.config.vibrate),
            timestamp=int(time.time() * 1000),
            primary_key=self.config.primary_key,
            actions=[
                NotificationAction(VIEW_ACTION, self.config.view_label),
                NotificationAction(CLOSE_ACTION, self.config.close_label),
            ],
        )

    def on_push(self, raw_payload: Optional[Union[bytes, str]]) -> Optional[Notification]:
        """
        Handle a push payload.

        Args:
            raw_payload: JSON object `{"title"?: str, "body"?: str}`, or None

        Returns:
            The notification shown, or None if the payload was dropped
        """
        if not raw_payload:
            log_push_dropped(logger, "empty payload")
            return None

        try:
            payload = json.loads(raw_payload)
        except (ValueError, UnicodeDecodeError) as e:
            log_push_dropped(logger, f"invalid JSON: {e}")
            return None

        if not isinstance(payload, dict):
            log_push_dropped(logger, f"payload is not an object: {type(payload).__name__}")
            return None

        notification = self.build(payload)
        self.surface.show(notification)
        return notification

    def on_notification_click(self, action: str, notification: Optional[Notification] = None) -> None:
        """
        Handle a click on a notification or one of its actions.

        The notification is always dismissed; "view" also opens or focuses the
        application root.
        """
        if notification is not None:
            self.surface.close(notification)

        if action == VIEW_ACTION:
            client = self.clients.open_window(self.root_url)
            logger.info(f"Opened {self.root_url} in {client.client_id}")
