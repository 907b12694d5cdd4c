"""
Connection Manager - lifecycle of the single backend link.

This module manages:
- The connection state machine
- Reconnection with exponential backoff
- Keepalive start/stop around the connected state
- Queueing sends while down and flushing them once on reconnect
- Publishing state transitions and inbound messages on the event bus

All state changes, timer callbacks and transport callbacks run on one
event loop. State is driven only by the transport's open/close signals and
by timer expirations; transport errors are reported, never acted on.

State machine:

    disconnected  -> connecting                 connect()
    connecting    -> connected                  transport open
    connecting    -> reconnecting|disconnected  transport close / timeout
    connected     -> disconnected (-> reconnecting)  transport close
    connected     -> disconnecting -> disconnected   disconnect()
    reconnecting  -> connecting                 reconnect timer
    reconnecting  -> disconnected               attempt cap reached
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..core.exceptions import (
    AuthenticationRequiredError,
    ConnectionFailedError,
    ConnectionTimeoutError,
    InvalidMessageError,
    InvalidStateTransitionError,
    LinkException,
    MaxReconnectAttemptsError,
    MessageSendFailedError,
    PongTimeoutError,
    UnknownLinkError,
)
from ..core.logging import correlation_context, redact_url
from .config import ConnectionConfig
from .events import EventBus, EventTopic, Handler, LinkErrorEvent
from .keepalive import KeepaliveConfig, KeepaliveMonitor
from .messages import TYPED_PAYLOADS, CancelOperation, Message, MessageType, decode_message
from .outbound_queue import OutboundQueue
from .reconnect import ReconnectionScheduler
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .stats import LinkStats, StatsCollector
from .transport import (
    LIVENESS_CLOSE_CODE,
    NORMAL_CLOSE_CODE,
    AiohttpTransport,
    Transport,
    TransportFactory,
)

if TYPE_CHECKING:
    from .session import TokenProvider

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    RECONNECTING = "reconnecting"


ALLOWED_TRANSITIONS = {
    ConnectionStatus.DISCONNECTED: {ConnectionStatus.CONNECTING, ConnectionStatus.RECONNECTING},
    ConnectionStatus.CONNECTING: {
        ConnectionStatus.CONNECTED,
        ConnectionStatus.RECONNECTING,
        ConnectionStatus.DISCONNECTED,
        ConnectionStatus.DISCONNECTING,
    },
    ConnectionStatus.CONNECTED: {ConnectionStatus.DISCONNECTED, ConnectionStatus.DISCONNECTING},
    ConnectionStatus.DISCONNECTING: {ConnectionStatus.DISCONNECTED},
    ConnectionStatus.RECONNECTING: {ConnectionStatus.CONNECTING, ConnectionStatus.DISCONNECTED},
}


@dataclass(frozen=True)
class ConnectionState:
    """Point-in-time copy of the link state."""

    status: ConnectionStatus
    reconnect_attempts: int = 0
    last_error: Optional[str] = None
    connected_at: Optional[int] = None
    last_activity: Optional[int] = None
    latency: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "reconnect_attempts": self.reconnect_attempts,
            "last_error": self.last_error,
            "connected_at": self.connected_at,
            "last_activity": self.last_activity,
            "latency": self.latency,
        }


class AttemptOutcome(Enum):
    """How one connection attempt settled."""

    OPENED = "opened"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"


class ConnectionManager:
    """
    Owns the single transport handle and the link state machine.

    Example:
        manager = ConnectionManager(ConnectionConfig(url="wss://backend/ws"))
        manager.subscribe(EventTopic.NOTIFICATION, show_notification)
        await manager.connect(token)
        manager.send(MessageType.CUSTOM_PAYLOAD, {"hello": "world"})
        ...
        manager.destroy()
    """

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
        scheduler: Optional[Scheduler] = None,
        token_provider: Optional["TokenProvider"] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Initialize the ConnectionManager.

        Args:
            config: Connection settings snapshot
            transport_factory: Builds a transport for a URL and listener
            scheduler: Clock and timer source (event loop by default)
            token_provider: Fallback credential source
            events: Event bus to publish on (a private one by default)
        """
        self._config = config or ConnectionConfig()
        self._transport_factory = transport_factory or AiohttpTransport.factory()
        self._scheduler = scheduler or AsyncioScheduler()
        self._token_provider = token_provider
        self.events = events or EventBus()

        self._stats = StatsCollector()
        self._queue = OutboundQueue(self._config.max_queue_size)
        self._reconnect = ReconnectionScheduler(
            self._scheduler,
            base_interval_ms=self._config.reconnect_interval_ms,
            max_interval_ms=self._config.max_reconnect_interval_ms,
            decay=self._config.reconnect_decay,
            max_attempts=self._config.max_reconnect_attempts,
        )
        self._keepalive = KeepaliveMonitor(
            self._scheduler,
            send_ping=self._send_ping,
            on_pong_timeout=self._handle_pong_timeout,
            on_latency=self._record_latency,
            config=KeepaliveConfig(
                ping_interval_ms=self._config.ping_interval_ms,
                pong_timeout_ms=self._config.pong_timeout_ms,
            ),
        )

        self._transport: Optional[Transport] = None
        self._connect_timer: Optional[TimerHandle] = None
        self._waiters: List[asyncio.Future] = []

        self._status = ConnectionStatus.DISCONNECTED
        self._auto_reconnect = self._config.auto_reconnect
        self._last_error: Optional[str] = None
        self._connected_at: Optional[int] = None
        self._last_activity: Optional[int] = None
        self._latency: Optional[float] = None
        self._destroyed = False

    # -------------------------------------------------------------------------
    # PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    # -------------------------------------------------------------------------
    # PUBLIC API
    # -------------------------------------------------------------------------

    async def connect(self, token: Optional[str] = None) -> None:
        """
        Open the link, waiting until the handshake settles.

        A no-op when already connected or connecting. A failed handshake
        is reported on the error topic and handed to the reconnection path.

        Args:
            token: Credential to use from now on

        Raises:
            AuthenticationRequiredError: If no credential is available
            ConnectionTimeoutError: If the handshake exceeded the timeout
        """
        if self._destroyed:
            logger.warning("connect() called on a destroyed ConnectionManager")
            return

        if token:
            self._apply_config(self._config.with_token(token))

        if self._status is ConnectionStatus.CONNECTED:
            logger.warning("Link already connected")
            return
        if self._status is ConnectionStatus.CONNECTING:
            logger.warning("Connection attempt already in progress")
            return

        credential = self._resolve_credential()
        if not credential:
            logger.error("Cannot connect: no credential available")
            raise AuthenticationRequiredError("No credential available")

        self._auto_reconnect = self._config.auto_reconnect
        self._reconnect.cancel()

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        self._begin_attempt(credential)

        outcome = await waiter
        if outcome is AttemptOutcome.TIMED_OUT:
            raise ConnectionTimeoutError(
                f"Connection timeout after {self._config.connection_timeout_ms}ms",
                timeout_ms=self._config.connection_timeout_ms,
            )

    def disconnect(self) -> None:
        """Close the link and stop automatic reconnection for this session."""
        if self._destroyed:
            return

        logger.info("Disconnecting link...")
        self._auto_reconnect = False
        self._reconnect.cancel()
        self._cancel_connect_timer()
        self._keepalive.stop()

        transport = self._transport
        if transport is not None:
            self._transport = None
            self._set_status(ConnectionStatus.DISCONNECTING)
            try:
                transport.close(NORMAL_CLOSE_CODE, "Client disconnect")
            except Exception as e:
                logger.debug(f"Error closing transport: {e}")

        self._stats.mark_disconnected()
        self._settle_waiters(AttemptOutcome.ABORTED)
        if self._set_status(ConnectionStatus.DISCONNECTED):
            self._publish_state(EventTopic.DISCONNECTED)

    def send(
        self,
        message_type: Union[MessageType, str],
        payload: Any = None,
        correlation_id: Optional[str] = None,
    ) -> Optional[Message]:
        """
        Send a message, or queue it while the link is down.

        Never raises and never blocks. Failures are reported on the error
        topic and the message is dropped.

        Returns:
            The message built for this call, or None if it was rejected
        """
        if self._destroyed:
            logger.warning("send() called on a destroyed ConnectionManager")
            return None

        try:
            message = Message.create(
                message_type,
                payload,
                correlation_id=correlation_id,
                timestamp=self._scheduler.time_ms(),
            )
        except ValueError:
            logger.error(f"Refusing to send unknown message type: {message_type}")
            self._stats.record_dropped()
            self._emit_error(MessageSendFailedError(f"Unknown message type: {message_type}"))
            return None

        if self._status is ConnectionStatus.CONNECTED and self._transport is not None:
            self._write(message)
        else:
            logger.debug(f"Link not connected, queuing {message.type.value} message")
            if self._queue.enqueue(message) is not None:
                self._stats.record_dropped()
        return message

    def ping(self) -> bool:
        """Send a liveness probe now. Returns False if none was sent."""
        if self._destroyed or not self.is_connected:
            return False
        return self._keepalive.ping()

    def cancel_operation(self, operation_id: str, reason: Optional[str] = None) -> Optional[Message]:
        return self.send(
            MessageType.CANCEL_OPERATION,
            CancelOperation(operation_id=operation_id, reason=reason).to_payload(),
        )

    def send_custom_payload(self, data: Any) -> Optional[Message]:
        return self.send(MessageType.CUSTOM_PAYLOAD, data)

    def update_token(self, token: str) -> None:
        """
        Replace the credential.

        A connected link is torn down and re-established with the new
        credential; there is no in-place re-authentication.
        """
        if self._destroyed:
            logger.warning("update_token() called on a destroyed ConnectionManager")
            return
        if not token:
            logger.warning("Ignoring empty token update")
            return

        self._apply_config(self._config.with_token(token))
        if self._status is ConnectionStatus.CONNECTED:
            logger.info("Token updated, reconnecting...")
            self.disconnect()
            self._auto_reconnect = self._config.auto_reconnect
            self._begin_attempt(token)

    def subscribe(self, topic: Union[EventTopic, str], handler: Handler) -> Callable[[], bool]:
        """Subscribe to a bus topic. Returns the unsubscribe callable."""
        if self._destroyed:
            logger.warning("subscribe() called on a destroyed ConnectionManager")
            return lambda: False
        return self.events.subscribe(topic, handler)

    def get_connection_state(self) -> ConnectionState:
        return ConnectionState(
            status=self._status,
            reconnect_attempts=self._reconnect.attempts,
            last_error=self._last_error,
            connected_at=self._connected_at,
            last_activity=self._last_activity,
            latency=self._latency,
        )

    def get_stats(self) -> LinkStats:
        return self._stats.snapshot(self._scheduler.now())

    def destroy(self) -> None:
        """
        Tear everything down. The instance is not reusable afterwards;
        later calls are logged no-ops.
        """
        if self._destroyed:
            return
        self.disconnect()
        self._destroyed = True
        discarded = self._queue.clear()
        self.events.clear()
        logger.info(f"ConnectionManager destroyed ({discarded} queued messages discarded)")

    # -------------------------------------------------------------------------
    # TRANSPORT CALLBACKS
    # -------------------------------------------------------------------------

    def handle_transport_open(self, transport: Transport) -> None:
        if transport is not self._transport:
            logger.debug("Ignoring open from a stale transport")
            return

        logger.info("Link connected")
        self._cancel_connect_timer()
        self._reconnect.reset()
        self._set_status(ConnectionStatus.CONNECTED)
        self._stats.mark_connected(self._scheduler.now())
        self._keepalive.start()
        self._flush_queue()
        self._settle_waiters(AttemptOutcome.OPENED)
        self._publish_state(EventTopic.CONNECTED)

    def handle_transport_message(self, transport: Transport, data: str) -> None:
        if transport is not self._transport:
            return

        received_at = self._scheduler.time_ms()
        try:
            message = decode_message(data, received_at=received_at)
        except InvalidMessageError as e:
            logger.error(f"Failed to parse message: {e.message}")
            self._emit_error(e)
            return

        self._stats.record_received(len(data.encode("utf-8")))
        self._last_activity = received_at
        self._dispatch(message)

    def handle_transport_error(self, transport: Transport, error: BaseException) -> None:
        if transport is not self._transport:
            return

        logger.error(f"Transport error: {error}")
        if isinstance(error, LinkException):
            self._emit_error(error)
            return

        if self._status is ConnectionStatus.CONNECTING:
            wrapped: LinkException = ConnectionFailedError(f"Connection failed: {error}")
        else:
            wrapped = UnknownLinkError(f"WebSocket error: {error}")
        wrapped.__cause__ = error
        self._emit_error(wrapped)

    def handle_transport_close(self, transport: Transport, code: Optional[int], reason: str) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        self._handle_link_lost(code, reason)

    # -------------------------------------------------------------------------
    # CONNECTION ATTEMPTS
    # -------------------------------------------------------------------------

    def _resolve_credential(self) -> Optional[str]:
        if self._config.token:
            return self._config.token
        if self._token_provider is None:
            return None
        try:
            token = self._token_provider.get_current_token()
        except Exception as e:
            logger.warning(f"Token provider failed: {e}")
            return None
        if token:
            self._apply_config(self._config.with_token(token))
        return token

    def _build_url(self, credential: str) -> str:
        param = self._config.token_query_param
        parts = urlsplit(self._config.url)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key != param
        ]
        query.append((param, credential))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def _begin_attempt(self, credential: str) -> None:
        self._set_status(ConnectionStatus.CONNECTING)
        url = self._build_url(credential)
        logger.info(f"Connecting to {redact_url(url)}")

        self._connect_timer = self._scheduler.call_later(
            self._config.connection_timeout_ms, self._handle_connect_timeout
        )
        try:
            transport = self._transport_factory(url, self)
            self._transport = transport
            transport.start()
        except Exception as e:
            logger.error(f"Could not start transport: {e}")
            self._transport = None
            error = ConnectionFailedError(f"Connection failed: {e}")
            error.__cause__ = e
            self._emit_error(error)
            self._fail_attempt(AttemptOutcome.FAILED)

    def _fail_attempt(self, outcome: AttemptOutcome) -> None:
        self._cancel_connect_timer()
        self._settle_waiters(outcome)
        if self._auto_reconnect:
            self._schedule_reconnect()
        elif self._set_status(ConnectionStatus.DISCONNECTED):
            self._publish_state(EventTopic.DISCONNECTED)

    def _handle_connect_timeout(self) -> None:
        self._connect_timer = None
        if self._status is not ConnectionStatus.CONNECTING:
            return

        timeout = self._config.connection_timeout_ms
        logger.error(f"Connection timeout after {timeout}ms")
        self._emit_error(
            ConnectionTimeoutError(f"Connection timeout after {timeout}ms", timeout_ms=timeout)
        )

        transport = self._transport
        self._transport = None
        if transport is not None:
            try:
                transport.close(NORMAL_CLOSE_CODE, "Connection timeout")
            except Exception as e:
                logger.debug(f"Error closing timed-out transport: {e}")
        self._fail_attempt(AttemptOutcome.TIMED_OUT)

    def _schedule_reconnect(self) -> None:
        if self._reconnect.pending:
            return

        if self._reconnect.exhausted:
            attempts = self._reconnect.attempts
            logger.error(f"Max reconnect attempts reached ({attempts})")
            self._emit_error(
                MaxReconnectAttemptsError(
                    f"Max reconnect attempts reached ({attempts})", attempts=attempts
                )
            )
            if self._set_status(ConnectionStatus.DISCONNECTED):
                self._publish_state(EventTopic.DISCONNECTED)
            return

        self._reconnect.schedule(self._handle_reconnect_timer)
        self._stats.record_reconnect()
        self._set_status(ConnectionStatus.RECONNECTING)
        self._publish_state(EventTopic.RECONNECTING)

    def _handle_reconnect_timer(self) -> None:
        if self._destroyed:
            return
        credential = self._resolve_credential()
        if not credential:
            logger.error("Cannot reconnect: no credential available")
            self._emit_error(AuthenticationRequiredError("No credential available for reconnect"))
            self._schedule_reconnect()
            return
        self._begin_attempt(credential)

    def _handle_link_lost(self, code: Optional[int], reason: str) -> None:
        self._keepalive.stop()
        self._stats.mark_disconnected()

        if self._status is ConnectionStatus.CONNECTING:
            logger.warning(f"Handshake closed before open (code={code})")
            self._fail_attempt(AttemptOutcome.FAILED)
            return

        logger.info(f"Link closed: {code} {reason}".rstrip())
        if self._set_status(ConnectionStatus.DISCONNECTED):
            self._publish_state(EventTopic.DISCONNECTED)
        if self._auto_reconnect:
            self._schedule_reconnect()

    def _force_close(self, code: int, reason: str) -> None:
        transport = self._transport
        if transport is None:
            return
        self._transport = None
        try:
            transport.close(code, reason)
        except Exception as e:
            logger.debug(f"Error force-closing transport: {e}")
        self._handle_link_lost(code, reason)

    def _cancel_connect_timer(self) -> None:
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

    def _settle_waiters(self, outcome: AttemptOutcome) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(outcome)

    # -------------------------------------------------------------------------
    # SENDING
    # -------------------------------------------------------------------------

    def _write(self, message: Message) -> bool:
        transport = self._transport
        if transport is None:
            self._stats.record_dropped()
            self._emit_error(
                MessageSendFailedError("Transport went away before send", message.message_id)
            )
            return False

        try:
            data = message.to_json()
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize message {message.message_id}: {e}")
            error = MessageSendFailedError(f"Failed to serialize message: {e}", message.message_id)
            error.__cause__ = e
            self._stats.record_dropped()
            self._emit_error(error)
            return False

        try:
            transport.send(data)
        except Exception as e:
            logger.error(f"Failed to send message {message.message_id}: {e}")
            error = MessageSendFailedError(f"Failed to send message: {e}", message.message_id)
            error.__cause__ = e
            self._stats.record_dropped()
            self._emit_error(error)
            return False

        self._stats.record_sent(len(data.encode("utf-8")))
        self._last_activity = self._scheduler.time_ms()
        logger.debug(f"Message sent: {message.type.value}")
        return True

    def _flush_queue(self) -> int:
        pending = self._queue.drain()
        if not pending:
            return 0

        logger.info(f"Processing {len(pending)} queued messages")
        sent = 0
        for message in pending:
            if self._write(message):
                sent += 1
        return sent

    def _send_ping(self, timestamp: int) -> None:
        self.send(MessageType.PING, {"timestamp": timestamp})

    # -------------------------------------------------------------------------
    # RECEIVING
    # -------------------------------------------------------------------------

    def _dispatch(self, message: Message) -> None:
        with correlation_context(message.correlation_id):
            logger.debug(f"Message received: {message.type.value}")

            parser = TYPED_PAYLOADS.get(message.type)
            typed = None
            if parser is not None:
                try:
                    typed = parser(message.payload)
                except InvalidMessageError as e:
                    logger.error(f"Dropping malformed {message.type.value} message: {e.message}")
                    self._emit_error(e)
                    return

            self.events.publish(EventTopic.MESSAGE, message)

            if message.type is MessageType.PONG:
                self._keepalive.handle_pong()
            elif message.type is MessageType.ERROR:
                self._handle_server_error(message.payload)
            elif typed is not None:
                self.events.publish(EventTopic(message.type.value), typed)
            else:
                logger.debug(f"No handler for inbound {message.type.value} message")

    def _handle_server_error(self, payload: Any) -> None:
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            text = payload["message"]
        else:
            text = "Server error"
        logger.error(f"Server error: {text}")
        self._emit_error(UnknownLinkError(text))

    # -------------------------------------------------------------------------
    # KEEPALIVE HOOKS
    # -------------------------------------------------------------------------

    def _record_latency(self, latency: float) -> None:
        self._latency = latency
        self._stats.record_latency(latency)

    def _handle_pong_timeout(self) -> None:
        self._emit_error(PongTimeoutError("Server not responding"))
        self._force_close(LIVENESS_CLOSE_CODE, "Pong timeout")

    # -------------------------------------------------------------------------
    # STATE
    # -------------------------------------------------------------------------

    def _apply_config(self, config: ConnectionConfig) -> None:
        self._config = config
        self._reconnect.configure(
            base_interval_ms=config.reconnect_interval_ms,
            max_interval_ms=config.max_reconnect_interval_ms,
            decay=config.reconnect_decay,
            max_attempts=config.max_reconnect_attempts,
        )
        self._keepalive.config = KeepaliveConfig(
            ping_interval_ms=config.ping_interval_ms,
            pong_timeout_ms=config.pong_timeout_ms,
        )
        self._queue.max_size = config.max_queue_size

    def _set_status(self, status: ConnectionStatus) -> bool:
        """Move along one edge of the state machine. Returns False if unchanged."""
        if status is self._status:
            return False
        if status not in ALLOWED_TRANSITIONS[self._status]:
            raise InvalidStateTransitionError(self._status.value, status.value)

        logger.debug(f"Link state {self._status.value} -> {status.value}")
        self._status = status
        now = self._scheduler.time_ms()
        self._last_activity = now
        if status is ConnectionStatus.CONNECTED:
            self._connected_at = now
        return True

    def _publish_state(self, topic: EventTopic) -> None:
        self.events.publish(topic, self.get_connection_state())

    def _emit_error(self, error: LinkException) -> None:
        self._last_error = error.message
        self.events.publish(
            EventTopic.ERROR, LinkErrorEvent.from_exception(error, self._scheduler.time_ms())
        )
