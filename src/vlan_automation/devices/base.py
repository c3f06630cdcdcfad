"""Device session abstraction.

A session is scoped to one switch, one server and one action type. It
accepts single configuration commands and a final commit.
"""
import logging
from abc import ABC, abstractmethod

from ..utils.connection import CommandResult

logger = logging.getLogger(__name__)


class DeviceSession(ABC):
    """Abstract configuration session on a switch."""

    def __init__(self, switch_id: int, server_id: int, action_type: str):
        self.switch_id = switch_id
        self.server_id = server_id
        self.action_type = action_type
        self._open = False

    @property
    def device_id(self) -> str:
        return f"switch-{self.switch_id}"

    @property
    def is_open(self) -> bool:
        return self._open

    @abstractmethod
    async def open(self) -> None:
        """Establish the session.

        Raises:
            ConnectionError: device unreachable or login rejected
        """
        pass

    @abstractmethod
    async def execute(self, command: str) -> CommandResult:
        """Execute one configuration command."""
        pass

    @abstractmethod
    async def commit(self) -> CommandResult:
        """Commit pending changes and persist them."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the session. Must be safe to call more than once."""
        pass

    # Context manager support
    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
