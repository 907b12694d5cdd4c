"""
Companion Link Network - the managed WebSocket link to the backend.

This module provides one long-lived, authenticated connection with
automatic reconnection, keepalive probing, outbound queueing and a typed
event surface.
"""

from companion_link.network.config import ConnectionConfig
from companion_link.network.connection_manager import (
    ALLOWED_TRANSITIONS,
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)
from companion_link.network.events import (
    EventBus,
    EventTopic,
    LinkErrorEvent,
)
from companion_link.network.forwarding import CHANNELS, EventForwarder
from companion_link.network.keepalive import KeepaliveConfig, KeepaliveMonitor
from companion_link.network.messages import (
    NOTIFICATION_LEVELS,
    TASK_PRIORITIES,
    CancelOperation,
    Message,
    MessageType,
    Notification,
    NotificationAction,
    ProgressUpdate,
    TaskAssigned,
    decode_message,
    generate_message_id,
)
from companion_link.network.outbound_queue import OutboundQueue
from companion_link.network.reconnect import ReconnectionScheduler, backoff_delay
from companion_link.network.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    TimerHandle,
)
from companion_link.network.session import (
    EnvTokenProvider,
    LinkSession,
    StaticTokenProvider,
    TokenProvider,
)
from companion_link.network.stats import LinkStats, StatsCollector
from companion_link.network.transport import (
    LIVENESS_CLOSE_CODE,
    NORMAL_CLOSE_CODE,
    AiohttpTransport,
    Transport,
    TransportClosedError,
    TransportFactory,
    TransportListener,
)

__all__ = [
    # Config
    "ConnectionConfig",
    # Manager
    "ALLOWED_TRANSITIONS",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Events
    "CHANNELS",
    "EventBus",
    "EventForwarder",
    "EventTopic",
    "LinkErrorEvent",
    # Messages
    "NOTIFICATION_LEVELS",
    "TASK_PRIORITIES",
    "CancelOperation",
    "Message",
    "MessageType",
    "Notification",
    "NotificationAction",
    "ProgressUpdate",
    "TaskAssigned",
    "decode_message",
    "generate_message_id",
    # Components
    "KeepaliveConfig",
    "KeepaliveMonitor",
    "LinkStats",
    "OutboundQueue",
    "ReconnectionScheduler",
    "StatsCollector",
    "backoff_delay",
    # Timing
    "AsyncioScheduler",
    "ManualScheduler",
    "Scheduler",
    "TimerHandle",
    # Session
    "EnvTokenProvider",
    "LinkSession",
    "StaticTokenProvider",
    "TokenProvider",
    # Transport
    "LIVENESS_CLOSE_CODE",
    "NORMAL_CLOSE_CODE",
    "AiohttpTransport",
    "Transport",
    "TransportClosedError",
    "TransportFactory",
    "TransportListener",
]
