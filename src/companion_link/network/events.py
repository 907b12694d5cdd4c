"""
Event Bus - typed publish/subscribe surface of the link.

Each topic keeps its own ordered subscriber list. Dispatch is synchronous
on the caller's context and follows subscription order. A failing
subscriber is logged and skipped; the remaining subscribers still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from ..core.exceptions import ErrorCode, LinkException

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventTopic(str, Enum):
    """Topics published by the ConnectionManager."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    MESSAGE = "message"
    ERROR = "error"
    PROGRESS_UPDATE = "progress_update"
    TASK_ASSIGNED = "task_assigned"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class LinkErrorEvent:
    """Payload of the ``error`` topic."""

    code: ErrorCode
    message: str
    timestamp: int
    original_error: Optional[BaseException] = None

    @classmethod
    def from_exception(cls, error: LinkException, timestamp: int) -> "LinkErrorEvent":
        cause = error.__cause__ if error.__cause__ is not None else error
        return cls(code=error.code, message=error.message, timestamp=timestamp, original_error=cause)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.original_error is not None:
            data["original_error"] = repr(self.original_error)
        return data


class EventBus:
    """Registry of subscriber lists, one per topic."""

    def __init__(self) -> None:
        self._subscribers: Dict[EventTopic, List[Handler]] = {topic: [] for topic in EventTopic}

    def subscribe(self, topic: Union[EventTopic, str], handler: Handler) -> Callable[[], bool]:
        """Register ``handler`` on ``topic``.

        Returns:
            A callable that removes this subscription

        Raises:
            ValueError: If the topic is unknown
        """
        topic = EventTopic(topic)
        self._subscribers[topic].append(handler)
        return lambda: self.unsubscribe(topic, handler)

    def unsubscribe(self, topic: Union[EventTopic, str], handler: Handler) -> bool:
        topic = EventTopic(topic)
        try:
            self._subscribers[topic].remove(handler)
            return True
        except ValueError:
            return False

    def publish(self, topic: EventTopic, event: Any) -> int:
        """Deliver ``event`` to every subscriber of ``topic``.

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        # Copy so handlers may (un)subscribe during dispatch
        for handler in list(self._subscribers[topic]):
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Subscriber for '{topic.value}' raised: {e}", exc_info=True)
        return delivered

    def subscriber_count(self, topic: Optional[Union[EventTopic, str]] = None) -> int:
        if topic is not None:
            return len(self._subscribers[EventTopic(topic)])
        return sum(len(handlers) for handlers in self._subscribers.values())

    def clear(self) -> None:
        """Detach every subscriber from every topic."""
        for handlers in self._subscribers.values():
            handlers.clear()
