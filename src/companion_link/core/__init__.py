# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Companion link core - configuration, errors and logging."""

from .config import LinkSettings, clear_config_cache, get_config
from .exceptions import (
    AuthenticationRequiredError,
    ConfigException,
    ConnectionFailedError,
    ConnectionTimeoutError,
    ErrorCode,
    InvalidMessageError,
    InvalidStateTransitionError,
    LinkException,
    MaxReconnectAttemptsError,
    MessageSendFailedError,
    PongTimeoutError,
    UnknownLinkError,
)
from .logging import (
    configure_logging,
    correlation_context,
    get_correlation_id,
    get_logger,
    redact_url,
)

__all__ = [
    "AuthenticationRequiredError",
    "ConfigException",
    "ConnectionFailedError",
    "ConnectionTimeoutError",
    "ErrorCode",
    "InvalidMessageError",
    "InvalidStateTransitionError",
    "LinkException",
    "LinkSettings",
    "MaxReconnectAttemptsError",
    "MessageSendFailedError",
    "PongTimeoutError",
    "UnknownLinkError",
    "clear_config_cache",
    "configure_logging",
    "correlation_context",
    "get_config",
    "get_correlation_id",
    "get_logger",
    "redact_url",
]
