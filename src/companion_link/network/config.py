"""
Connection configuration for the companion link.

ConnectionConfig is an immutable snapshot. Changing the credential or any
other setting produces a new snapshot that replaces the old one wholesale.

All intervals are in milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..core.exceptions import ConfigException

if TYPE_CHECKING:
    from ..core.config import LinkSettings


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Settings for one ConnectionManager.

    Attributes:
        url: Backend WebSocket endpoint
        token: Bearer credential, sent as a query parameter at handshake
        auto_reconnect: Retry automatically after failures and drops
        reconnect_interval_ms: Delay before the first retry
        max_reconnect_interval_ms: Upper bound for any retry delay
        reconnect_decay: Backoff multiplier between retries
        max_reconnect_attempts: Attempt cap, 0 for unlimited
        ping_interval_ms: Liveness probe cadence
        pong_timeout_ms: Time a probe may go unanswered
        connection_timeout_ms: Bound on a single handshake
        max_queue_size: Outbound queue bound, 0 for unbounded
        token_query_param: Query parameter name for the credential
    """

    url: str = "ws://localhost:8000/ws"
    token: Optional[str] = None
    auto_reconnect: bool = True
    reconnect_interval_ms: float = 1000
    max_reconnect_interval_ms: float = 30000
    reconnect_decay: float = 1.5
    max_reconnect_attempts: int = 0
    ping_interval_ms: float = 30000
    pong_timeout_ms: float = 5000
    connection_timeout_ms: float = 10000
    max_queue_size: int = 0
    token_query_param: str = "token"

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigException("Connection URL is required", field="url")
        for name in (
            "reconnect_interval_ms",
            "max_reconnect_interval_ms",
            "ping_interval_ms",
            "pong_timeout_ms",
            "connection_timeout_ms",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigException(f"{name} must be positive", field=name, value=value)
        if self.max_reconnect_interval_ms < self.reconnect_interval_ms:
            raise ConfigException(
                "max_reconnect_interval_ms must be >= reconnect_interval_ms",
                field="max_reconnect_interval_ms",
                value=self.max_reconnect_interval_ms,
            )
        if self.reconnect_decay < 1:
            raise ConfigException(
                "reconnect_decay must be >= 1", field="reconnect_decay", value=self.reconnect_decay
            )
        if self.max_reconnect_attempts < 0:
            raise ConfigException(
                "max_reconnect_attempts must be >= 0",
                field="max_reconnect_attempts",
                value=self.max_reconnect_attempts,
            )
        if self.max_queue_size < 0:
            raise ConfigException(
                "max_queue_size must be >= 0", field="max_queue_size", value=self.max_queue_size
            )

    def with_token(self, token: Optional[str]) -> "ConnectionConfig":
        """Return a new snapshot carrying ``token``."""
        return replace(self, token=token)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        return {
            "url": self.url,
            "token": ("[REDACTED]" if self.token else None) if redact else self.token,
            "auto_reconnect": self.auto_reconnect,
            "reconnect_interval_ms": self.reconnect_interval_ms,
            "max_reconnect_interval_ms": self.max_reconnect_interval_ms,
            "reconnect_decay": self.reconnect_decay,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "ping_interval_ms": self.ping_interval_ms,
            "pong_timeout_ms": self.pong_timeout_ms,
            "connection_timeout_ms": self.connection_timeout_ms,
            "max_queue_size": self.max_queue_size,
            "token_query_param": self.token_query_param,
        }

    @classmethod
    def from_settings(cls, settings: "LinkSettings", **overrides: Any) -> "ConnectionConfig":
        """Build a snapshot from environment settings, with optional overrides."""
        values: Dict[str, Any] = {
            "url": settings.ws_url,
            "token": settings.ws_token,
            "auto_reconnect": settings.auto_reconnect,
            "reconnect_interval_ms": settings.reconnect_interval_ms,
            "max_reconnect_interval_ms": settings.max_reconnect_interval_ms,
            "reconnect_decay": settings.reconnect_decay,
            "max_reconnect_attempts": settings.max_reconnect_attempts,
            "ping_interval_ms": settings.ping_interval_ms,
            "pong_timeout_ms": settings.pong_timeout_ms,
            "connection_timeout_ms": settings.connection_timeout_ms,
            "max_queue_size": settings.max_queue_size,
            "token_query_param": settings.token_query_param,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
