# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for the companion link.

Every fault the link can observe maps to one ``ErrorCode``. Transport and
parse faults are caught at the boundary and re-emitted as error events
carrying these exceptions; only ``connect()`` lets one escape to its caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes published on the ``error`` topic."""

    CONNECTION_FAILED = "CONNECTION_FAILED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
    MESSAGE_SEND_FAILED = "MESSAGE_SEND_FAILED"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    MAX_RECONNECT_ATTEMPTS = "MAX_RECONNECT_ATTEMPTS"
    PONG_TIMEOUT = "PONG_TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class LinkException(Exception):  # noqa: N818
    """Base exception for all companion link errors.

    Subclasses pin ``code`` so an instance can be turned into an error
    event without further classification.
    """

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigException(LinkException):
    """Exception for configuration errors.

    Raised when:
    - A connection setting is out of range
    - The endpoint URL is missing
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConnectionFailedError(LinkException):
    """The handshake never completed."""

    code = ErrorCode.CONNECTION_FAILED


class AuthenticationRequiredError(ConnectionFailedError):
    """No credential was available for the handshake."""

    code = ErrorCode.AUTHENTICATION_FAILED


class ConnectionTimeoutError(LinkException):
    """The handshake did not settle within the connection timeout."""

    code = ErrorCode.CONNECTION_TIMEOUT

    def __init__(self, message: str, timeout_ms: float | None = None):
        details = {}
        if timeout_ms is not None:
            details["timeout_ms"] = timeout_ms
        super().__init__(message, details)
        self.timeout_ms = timeout_ms


class MessageSendFailedError(LinkException):
    """Serialization or write failure. The message is dropped, not retried."""

    code = ErrorCode.MESSAGE_SEND_FAILED

    def __init__(self, message: str, message_id: str | None = None):
        details = {}
        if message_id:
            details["message_id"] = message_id
        super().__init__(message, details)
        self.message_id = message_id


class InvalidMessageError(LinkException):
    """Malformed inbound payload. Dropped and logged, no state change."""

    code = ErrorCode.INVALID_MESSAGE

    def __init__(self, message: str, field: str | None = None):
        details = {}
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field


class MaxReconnectAttemptsError(LinkException):
    """Automatic retry halted after the configured number of attempts."""

    code = ErrorCode.MAX_RECONNECT_ATTEMPTS

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message, {"attempts": attempts})
        self.attempts = attempts


class PongTimeoutError(LinkException):
    """No pong arrived within the pong timeout of a ping."""

    code = ErrorCode.PONG_TIMEOUT


class UnknownLinkError(LinkException):
    """Uncategorized transport fault or server-reported error."""

    code = ErrorCode.UNKNOWN_ERROR


class InvalidStateTransitionError(LinkException):
    """A state change was attempted along an edge that does not exist."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Invalid transition {current} -> {target}",
            {"from": current, "to": target},
        )
        self.current = current
        self.target = target
