"""
Link Session - owns at most one ConnectionManager for the process.

The session ties the link to the authentication state: it opens the link
with the current credential, passes token rotations through, and disposes
of the manager when the user signs out or the process shuts down.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Protocol, Union

from ..core.exceptions import LinkException
from .config import ConnectionConfig
from .connection_manager import ConnectionManager, ConnectionState
from .forwarding import EventForwarder, Sink
from .messages import Message, MessageType
from .scheduler import Scheduler
from .stats import LinkStats
from .transport import TransportFactory

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    """Source of the current bearer credential."""

    def get_current_token(self) -> Optional[str]: ...


class StaticTokenProvider:
    """Holds a token set in-process, e.g. by a login flow."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_current_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token


class EnvTokenProvider:
    """Reads the token from an environment variable on every call."""

    def __init__(self, variable: str = "COMPANION_LINK_TOKEN"):
        self.variable = variable

    def get_current_token(self) -> Optional[str]:
        return os.environ.get(self.variable) or None


class LinkSession:
    """
    Explicit owner of the process-wide link.

    Example:
        session = LinkSession(config, StaticTokenProvider(token), sink=print)
        await session.open()
        session.manager.send(MessageType.CUSTOM_PAYLOAD, {"a": 1})
        session.dispose()
    """

    def __init__(
        self,
        config: ConnectionConfig,
        token_provider: TokenProvider,
        sink: Optional[Sink] = None,
        scheduler: Optional[Scheduler] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.config = config
        self.token_provider = token_provider
        self._sink = sink
        self._scheduler = scheduler
        self._transport_factory = transport_factory

        self._manager: Optional[ConnectionManager] = None
        self._forwarder: Optional[EventForwarder] = None

    @property
    def manager(self) -> Optional[ConnectionManager]:
        return self._manager

    def _ensure_manager(self, token: str) -> ConnectionManager:
        if self._manager is None:
            self._manager = ConnectionManager(
                self.config.with_token(token),
                transport_factory=self._transport_factory,
                scheduler=self._scheduler,
                token_provider=self.token_provider,
            )
            if self._sink is not None:
                self._forwarder = EventForwarder(self._manager.events, self._sink)
                self._forwarder.attach()
        return self._manager

    async def open(self) -> bool:
        """
        Connect with the provider's current token.

        Returns:
            True if the link reached the connected state
        """
        token = self.token_provider.get_current_token()
        if not token:
            logger.error("Cannot open link: not authenticated")
            return False

        manager = self._ensure_manager(token)
        try:
            await manager.connect(token)
        except LinkException as e:
            logger.error(f"Link connection error: {e.message}")
            return False
        return manager.is_connected

    def close(self) -> None:
        """Disconnect without discarding the manager."""
        if self._manager is not None:
            self._manager.disconnect()

    def send(
        self,
        message_type: Union[MessageType, str],
        payload: Any = None,
        correlation_id: Optional[str] = None,
    ) -> Optional[Message]:
        if self._manager is None:
            logger.warning("Cannot send: link not initialized")
            return None
        return self._manager.send(message_type, payload, correlation_id)

    def handle_token_rotation(self, token: str) -> bool:
        if self._manager is None:
            logger.debug("Token rotated with no active link")
            return False
        self._manager.update_token(token)
        return True

    async def handle_auth_state_change(self, authenticated: bool, reason: str = "") -> None:
        """React to the user signing in or out."""
        if authenticated:
            if reason != "login":
                return
            if self._manager is not None:
                logger.debug("Link already initialized, ignoring login")
                return
            logger.info("User authenticated, opening link...")
            if await self.open():
                logger.info("Link auto-connected")
        else:
            logger.info("User unauthenticated, closing link...")
            self.dispose()

    def get_connection_state(self) -> Optional[ConnectionState]:
        return self._manager.get_connection_state() if self._manager else None

    def get_stats(self) -> Optional[LinkStats]:
        return self._manager.get_stats() if self._manager else None

    def dispose(self) -> None:
        """Destroy the manager. A later ``open`` creates a fresh one."""
        if self._forwarder is not None:
            self._forwarder.detach()
            self._forwarder = None
        if self._manager is not None:
            self._manager.destroy()
            self._manager = None
