"""
Message envelope and typed payloads for the companion link protocol.

Every frame is a JSON object:

    {"type": ..., "payload": ..., "messageId": ..., "timestamp": <epoch ms>,
     "correlationId": ...}

Message: immutable envelope, built on send or on receipt
ProgressUpdate / TaskAssigned / Notification: server->client payloads
CancelOperation: client->server payload
"""

from __future__ import annotations

import json
import math
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.exceptions import InvalidMessageError

_ID_ALPHABET = string.ascii_lowercase + string.digits


class MessageType(str, Enum):
    """Enumerated message kinds."""

    # Server -> Client
    PROGRESS_UPDATE = "progress_update"
    TASK_ASSIGNED = "task_assigned"
    NOTIFICATION = "notification"
    ERROR = "error"
    PONG = "pong"

    # Client -> Server
    PING = "ping"
    CANCEL_OPERATION = "cancel_operation"
    CUSTOM_PAYLOAD = "custom_payload"
    DOCUMENT_UPLOAD = "document_upload"
    DOM_SNAPSHOT = "dom_snapshot"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_message_id(timestamp: Optional[int] = None) -> str:
    """Generate a message id of the form ``<epoch-ms>-<9 random chars>``."""
    if timestamp is None:
        timestamp = now_ms()
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{timestamp}-{suffix}"


@dataclass(frozen=True)
class Message:
    """A single protocol envelope. Immutable once constructed."""

    type: MessageType
    payload: Any
    message_id: str
    timestamp: int
    correlation_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        message_type: MessageType | str,
        payload: Any = None,
        correlation_id: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> "Message":
        """Build an outbound message with a fresh id and timestamp.

        Raises:
            ValueError: If ``message_type`` is not a known kind
        """
        if timestamp is None:
            timestamp = now_ms()
        return cls(
            type=MessageType(message_type),
            payload=payload,
            message_id=generate_message_id(timestamp),
            timestamp=timestamp,
            correlation_id=correlation_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "payload": self.payload,
            "messageId": self.message_id,
            "timestamp": self.timestamp,
        }
        if self.correlation_id is not None:
            data["correlationId"] = self.correlation_id
        return data

    def to_json(self) -> str:
        """Serialize to the wire format.

        Raises:
            TypeError, ValueError: If the payload is not JSON-serializable
        """
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)

    @classmethod
    def from_dict(cls, data: Any, received_at: Optional[int] = None) -> "Message":
        """Validate and build a message from a decoded JSON value.

        Missing ``messageId``/``timestamp`` are filled locally.

        Raises:
            InvalidMessageError: If the envelope is malformed
        """
        if not isinstance(data, dict):
            raise InvalidMessageError("Message must be a JSON object")

        raw_type = data.get("type")
        if not isinstance(raw_type, str):
            raise InvalidMessageError("Message type missing or not a string", field="type")
        try:
            message_type = MessageType(raw_type)
        except ValueError:
            raise InvalidMessageError(f"Unknown message type: {raw_type}", field="type") from None

        if received_at is None:
            received_at = now_ms()

        timestamp = data.get("timestamp", received_at)
        if not _is_finite_number(timestamp):
            raise InvalidMessageError("Timestamp must be a finite number", field="timestamp")

        message_id = data.get("messageId")
        if message_id is None:
            message_id = generate_message_id(received_at)
        elif not isinstance(message_id, str):
            raise InvalidMessageError("messageId must be a string", field="messageId")

        correlation_id = data.get("correlationId")
        if correlation_id is not None and not isinstance(correlation_id, str):
            raise InvalidMessageError("correlationId must be a string", field="correlationId")

        return cls(
            type=message_type,
            payload=data.get("payload"),
            message_id=message_id,
            timestamp=int(timestamp),
            correlation_id=correlation_id,
        )


def decode_message(raw: str | bytes, received_at: Optional[int] = None) -> Message:
    """Decode one inbound frame.

    Raises:
        InvalidMessageError: If the frame is not a valid envelope
    """
    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidMessageError(f"Invalid message format: {e}") from e
    return Message.from_dict(data, received_at=received_at)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================


def _is_finite_number(value: Any) -> bool:
    # 1e999 decodes to inf without going through parse_constant
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_object(payload: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidMessageError(f"{kind} payload must be an object", field="payload")
    return payload


def _require_str(data: Dict[str, Any], key: str, kind: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise InvalidMessageError(f"{kind} requires string field '{key}'", field=key)
    return value


def _optional_str(data: Dict[str, Any], key: str, kind: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidMessageError(f"{kind} field '{key}' must be a string", field=key)
    return value


def _optional_number(data: Dict[str, Any], key: str, kind: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if not _is_finite_number(value):
        raise InvalidMessageError(f"{kind} field '{key}' must be a finite number", field=key)
    return value


def _optional_dict(data: Dict[str, Any], key: str, kind: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidMessageError(f"{kind} field '{key}' must be an object", field=key)
    return value


@dataclass(frozen=True)
class ProgressUpdate:
    """Progress of a long-running backend operation."""

    operation_id: str
    progress: float
    step: str
    total_steps: Optional[int] = None
    current_step: Optional[int] = None
    estimated_time_remaining: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "ProgressUpdate":
        data = _require_object(payload, "progress_update")
        progress = _optional_number(data, "progress", "progress_update")
        if progress is None or not 0 <= progress <= 100:
            raise InvalidMessageError(
                "progress_update requires 'progress' between 0 and 100", field="progress"
            )
        total_steps = _optional_number(data, "totalSteps", "progress_update")
        current_step = _optional_number(data, "currentStep", "progress_update")
        return cls(
            operation_id=_require_str(data, "operationId", "progress_update"),
            progress=progress,
            step=_require_str(data, "step", "progress_update"),
            total_steps=int(total_steps) if total_steps is not None else None,
            current_step=int(current_step) if current_step is not None else None,
            estimated_time_remaining=_optional_number(
                data, "estimatedTimeRemaining", "progress_update"
            ),
            metadata=_optional_dict(data, "metadata", "progress_update"),
        )


TASK_PRIORITIES = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class TaskAssigned:
    """A task pushed to the operator by the backend."""

    task_id: str
    task_type: str
    description: str
    priority: str
    due_date: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "TaskAssigned":
        data = _require_object(payload, "task_assigned")
        priority = _require_str(data, "priority", "task_assigned")
        if priority not in TASK_PRIORITIES:
            raise InvalidMessageError(f"Unknown task priority: {priority}", field="priority")
        due_date = _optional_number(data, "dueDate", "task_assigned")
        return cls(
            task_id=_require_str(data, "taskId", "task_assigned"),
            task_type=_require_str(data, "taskType", "task_assigned"),
            description=_require_str(data, "description", "task_assigned"),
            priority=priority,
            due_date=int(due_date) if due_date is not None else None,
            data=_optional_dict(data, "data", "task_assigned"),
        )


NOTIFICATION_LEVELS = ("info", "warning", "error", "success")


@dataclass(frozen=True)
class NotificationAction:
    action_id: str
    label: str
    type: str = "secondary"


@dataclass(frozen=True)
class Notification:
    """A user-facing notification."""

    notification_id: str
    title: str
    message: str
    level: str
    actions: List[NotificationAction] = field(default_factory=list)
    timeout: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "Notification":
        data = _require_object(payload, "notification")
        level = _require_str(data, "level", "notification")
        if level not in NOTIFICATION_LEVELS:
            raise InvalidMessageError(f"Unknown notification level: {level}", field="level")

        raw_actions = data.get("actions") or []
        if not isinstance(raw_actions, list):
            raise InvalidMessageError("notification 'actions' must be a list", field="actions")
        actions = []
        for raw in raw_actions:
            action = _require_object(raw, "notification action")
            actions.append(
                NotificationAction(
                    action_id=_require_str(action, "actionId", "notification action"),
                    label=_require_str(action, "label", "notification action"),
                    type=_optional_str(action, "type", "notification action", "secondary"),
                )
            )

        timeout = _optional_number(data, "timeout", "notification")
        return cls(
            notification_id=_require_str(data, "notificationId", "notification"),
            title=_require_str(data, "title", "notification"),
            message=_require_str(data, "message", "notification"),
            level=level,
            actions=actions,
            timeout=int(timeout) if timeout is not None else None,
            data=_optional_dict(data, "data", "notification"),
        )


@dataclass(frozen=True)
class CancelOperation:
    """Request to cancel a backend operation."""

    operation_id: str
    reason: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"operationId": self.operation_id}
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


# Inbound kinds that get their own event topic, with their payload parsers
TYPED_PAYLOADS = {
    MessageType.PROGRESS_UPDATE: ProgressUpdate.from_payload,
    MessageType.TASK_ASSIGNED: TaskAssigned.from_payload,
    MessageType.NOTIFICATION: Notification.from_payload,
}
