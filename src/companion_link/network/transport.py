"""
Transport - one duplex WebSocket connection to the backend.

The ConnectionManager is the sole owner of a transport. A transport
reports exactly one of its lifecycles through the listener:

    open -> message* -> close            (normal)
    error -> close                       (handshake failure)
    open -> message* -> error? -> close  (lost connection)

``close`` is always the final signal, so the manager can drive state from
open/close alone and treat errors as reports.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

import aiohttp
from aiohttp import WSMsgType

from ..core.exceptions import ConnectionFailedError, MessageSendFailedError, UnknownLinkError
from ..core.logging import redact_url

logger = logging.getLogger(__name__)

# Close code used when the client abandons a connection for liveness reasons
LIVENESS_CLOSE_CODE = 4000
NORMAL_CLOSE_CODE = 1000


class TransportListener(Protocol):
    """Callbacks a transport reports into."""

    def handle_transport_open(self, transport: "Transport") -> None: ...

    def handle_transport_message(self, transport: "Transport", data: str) -> None: ...

    def handle_transport_error(self, transport: "Transport", error: BaseException) -> None: ...

    def handle_transport_close(
        self, transport: "Transport", code: Optional[int], reason: str
    ) -> None: ...


class Transport(Protocol):
    """A single duplex connection handle."""

    @property
    def is_open(self) -> bool: ...

    def start(self) -> None: ...

    def send(self, data: str) -> None: ...

    def close(self, code: int = NORMAL_CLOSE_CODE, reason: str = "") -> None: ...


TransportFactory = Callable[[str, TransportListener], Transport]


class TransportClosedError(Exception):
    """Raised by ``send`` when the transport cannot accept writes."""


class AiohttpTransport:
    """Transport over ``aiohttp`` WebSockets.

    Writes are queued and performed by one writer task, so they reach the
    socket in call order.
    """

    def __init__(
        self,
        url: str,
        listener: TransportListener,
        session: Optional[aiohttp.ClientSession] = None,
        max_msg_size: int = 4 * 1024 * 1024,
    ):
        self.url = url
        self._listener = listener
        self._session = session
        self._owns_session = session is None
        self._max_msg_size = max_msg_size

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._closing = False
        self._close_code: Optional[int] = None
        self._close_reason = ""

    @classmethod
    def factory(cls, session: Optional[aiohttp.ClientSession] = None) -> TransportFactory:
        """Build a TransportFactory, optionally sharing one ClientSession."""

        def create(url: str, listener: TransportListener) -> "AiohttpTransport":
            return cls(url, listener, session=session)

        return create

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed and not self._closing

    def start(self) -> None:
        """Begin the handshake in the background. Needs a running loop."""
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, data: str) -> None:
        if not self.is_open:
            raise TransportClosedError("Transport is not open")
        self._outbox.put_nowait(data)

    def close(self, code: int = NORMAL_CLOSE_CODE, reason: str = "") -> None:
        if self._closing:
            return
        self._closing = True
        self._close_code = code
        self._close_reason = reason

        if self._ws is not None and not self._ws.closed:
            asyncio.get_running_loop().create_task(
                self._ws.close(code=code, message=reason.encode())
            )
        elif self._task is not None and not self._task.done():
            # Still handshaking
            self._task.cancel()

    async def _run(self) -> None:
        session = self._session
        code: Optional[int] = None
        reason = ""
        try:
            if session is None:
                session = aiohttp.ClientSession()
                self._session = session

            try:
                self._ws = await session.ws_connect(
                    self.url,
                    autoping=True,
                    max_msg_size=self._max_msg_size,
                )
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Handshake with {redact_url(self.url)} failed: {e}")
                err = ConnectionFailedError(f"Connection failed: {e}")
                err.__cause__ = e
                self._listener.handle_transport_error(self, err)
                return

            if self._closing:
                await self._ws.close(
                    code=self._close_code or NORMAL_CLOSE_CODE,
                    message=self._close_reason.encode(),
                )
                return

            self._listener.handle_transport_open(self)
            self._writer_task = asyncio.get_running_loop().create_task(self._write_loop())

            async for msg in self._ws:
                if msg.type == WSMsgType.TEXT:
                    self._deliver(msg.data)
                elif msg.type == WSMsgType.BINARY:
                    try:
                        text = msg.data.decode("utf-8")
                    except UnicodeDecodeError as e:
                        logger.warning(f"Dropping undecodable binary frame: {e}")
                        continue
                    self._deliver(text)
                elif msg.type == WSMsgType.ERROR:
                    exc = self._ws.exception()
                    err = UnknownLinkError(f"WebSocket error: {exc}")
                    err.__cause__ = exc
                    self._listener.handle_transport_error(self, err)
                    break

            code = self._ws.close_code
            reason = self._close_reason
        except aiohttp.ClientError as e:
            err = UnknownLinkError(f"WebSocket error: {e}")
            err.__cause__ = e
            self._listener.handle_transport_error(self, err)
        finally:
            if self._writer_task is not None:
                self._writer_task.cancel()
            if self._ws is not None and not self._ws.closed:
                await self._ws.close()
            if self._owns_session and session is not None:
                await session.close()
            if code is None:
                code = self._close_code
                reason = self._close_reason
            self._listener.handle_transport_close(self, code, reason)

    def _deliver(self, data: str) -> None:
        # Only close is a lifecycle signal; a listener fault must not end the receive loop
        try:
            self._listener.handle_transport_message(self, data)
        except Exception as e:
            logger.error(f"Listener failed to handle inbound frame: {e}", exc_info=True)

    async def _write_loop(self) -> None:
        while True:
            data = await self._outbox.get()
            ws = self._ws
            if ws is None or ws.closed:
                break
            try:
                await ws.send_str(data)
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                err = MessageSendFailedError(f"Failed to send message: {e}")
                err.__cause__ = e
                self._listener.handle_transport_error(self, err)
