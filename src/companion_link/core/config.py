# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized settings for the companion link.

All environment-based configuration flows through this module.

Usage:
    from companion_link.core.config import get_config
    config = get_config()

    url = config.ws_url
    log_level = config.log_level
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LinkSettings(BaseSettings):
    """Settings for the link, read from ``COMPANION_LINK_*`` variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # CONNECTION SETTINGS
    # ==========================================================================

    ws_url: str = Field(
        default="ws://localhost:8000/ws",
        description="Backend WebSocket endpoint",
        validation_alias="COMPANION_LINK_URL",
    )
    ws_token: str | None = Field(
        default=None,
        description="Bearer token passed at handshake time",
        validation_alias="COMPANION_LINK_TOKEN",
    )
    token_query_param: str = Field(
        default="token",
        description="Query parameter carrying the bearer token",
        validation_alias="COMPANION_LINK_TOKEN_QUERY_PARAM",
    )
    connection_timeout_ms: int = Field(
        default=10000,
        description="Handshake timeout in milliseconds",
        validation_alias="COMPANION_LINK_CONNECTION_TIMEOUT_MS",
    )

    # ==========================================================================
    # RECONNECTION SETTINGS
    # ==========================================================================

    auto_reconnect: bool = Field(
        default=True,
        description="Reconnect automatically after the link drops",
        validation_alias="COMPANION_LINK_AUTO_RECONNECT",
    )
    reconnect_interval_ms: int = Field(
        default=1000,
        description="Base reconnect delay in milliseconds",
        validation_alias="COMPANION_LINK_RECONNECT_INTERVAL_MS",
    )
    max_reconnect_interval_ms: int = Field(
        default=30000,
        description="Upper bound for the reconnect delay",
        validation_alias="COMPANION_LINK_MAX_RECONNECT_INTERVAL_MS",
    )
    reconnect_decay: float = Field(
        default=1.5,
        description="Exponential backoff factor",
        validation_alias="COMPANION_LINK_RECONNECT_DECAY",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        description="Attempt cap, 0 for unlimited",
        validation_alias="COMPANION_LINK_MAX_RECONNECT_ATTEMPTS",
    )

    # ==========================================================================
    # KEEPALIVE / QUEUE SETTINGS
    # ==========================================================================

    ping_interval_ms: int = Field(
        default=30000,
        description="Interval between liveness probes",
        validation_alias="COMPANION_LINK_PING_INTERVAL_MS",
    )
    pong_timeout_ms: int = Field(
        default=5000,
        description="Time allowed for a pong to arrive",
        validation_alias="COMPANION_LINK_PONG_TIMEOUT_MS",
    )
    max_queue_size: int = Field(
        default=0,
        description="Outbound queue bound, 0 for unbounded",
        validation_alias="COMPANION_LINK_MAX_QUEUE_SIZE",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="COMPANION_LINK_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="COMPANION_LINK_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="COMPANION_LINK_LOG_FILE",
    )


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: LinkSettings | None = None


def get_config() -> LinkSettings:
    """Get the process-wide settings instance.

    Returns:
        The cached LinkSettings instance.
    """
    global _config
    if _config is None:
        _config = LinkSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
