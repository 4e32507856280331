"""
Control channel between the host application and the gateway.

The host application is a trusted collaborator, so malformed or unknown
messages are ignored rather than reported.
"""

from enum import Enum
from typing import Any, Optional

from stashgate.core.models import LifecycleState
from stashgate.gateway.lifecycle import LifecycleController
from stashgate.logging_config import get_logger

logger = get_logger(__name__)


class ControlCommand(str, Enum):
    FORCE_ACTIVATE = "force-activate"


class ControlChannel:
    """Accepts out-of-band commands for one lifecycle controller."""

    def __init__(self, lifecycle: LifecycleController):
        self.lifecycle = lifecycle

    @staticmethod
    def parse(message: Any) -> Optional[ControlCommand]:
        """Extract the command of a `{"type": ...}` message, or None."""
        if not isinstance(message, dict):
            return None
        try:
            return ControlCommand(message.get("type"))
        except ValueError:
            return None

    async def handle(self, message: Any) -> bool:
        """
        Handle one control message.

        force-activate activates a controller that is installed and waiting
        right away instead of at the next natural activation point.

        Returns:
            True if the message caused a transition
        """
        command = self.parse(message)
        if command is None:
            logger.debug(f"Ignoring unrecognized control message: {message!r}")
            return False

        if command is ControlCommand.FORCE_ACTIVATE:
            if self.lifecycle.state is not LifecycleState.INSTALLED_WAITING:
                logger.debug(
                    f"force-activate ignored in state {self.lifecycle.state.value}"
                )
                return False
            logger.info(f"force-activate received for version {self.lifecycle.version}")
            await self.lifecycle.activate()
            return True

        return False
