"""
Event Forwarder - relays link events to a presentation layer.

Each bus topic maps to a channel name. Events are passed through
unchanged; the forwarder adds no behavior of its own.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .events import EventBus, EventTopic

logger = logging.getLogger(__name__)

Sink = Callable[[str, Any], None]

CHANNELS: Dict[EventTopic, str] = {
    EventTopic.CONNECTED: "ws-connected",
    EventTopic.DISCONNECTED: "ws-disconnected",
    EventTopic.RECONNECTING: "ws-reconnecting",
    EventTopic.ERROR: "ws-error",
    EventTopic.MESSAGE: "ws-message-received",
    EventTopic.PROGRESS_UPDATE: "ws-progress-update",
    EventTopic.TASK_ASSIGNED: "ws-task-assigned",
    EventTopic.NOTIFICATION: "ws-notification",
}


class EventForwarder:
    """Subscribes to every topic of a bus and relays events to a sink."""

    def __init__(self, events: EventBus, sink: Sink, channels: Optional[Dict[EventTopic, str]] = None):
        self._events = events
        self._sink = sink
        self._channels = dict(channels or CHANNELS)
        self._unsubscribers: List[Callable[[], bool]] = []
        self.forwarded = 0

    @property
    def attached(self) -> bool:
        return bool(self._unsubscribers)

    def attach(self) -> None:
        if self._unsubscribers:
            return
        for topic, channel in self._channels.items():
            self._unsubscribers.append(self._events.subscribe(topic, self._relay(channel)))
        logger.info(f"Event forwarding attached ({len(self._channels)} channels)")

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _relay(self, channel: str) -> Callable[[Any], None]:
        def forward(event: Any) -> None:
            logger.debug(f"Forwarding event on {channel}")
            self.forwarded += 1
            self._sink(channel, event)

        return forward
