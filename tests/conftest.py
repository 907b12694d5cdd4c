"""Global test fixtures for the Companion Link test suite."""

from __future__ import annotations

import json
from typing import Any

import pytest
from companion_link.core.config import clear_config_cache
from companion_link.network.config import ConnectionConfig
from companion_link.network.connection_manager import ConnectionManager
from companion_link.network.events import EventTopic
from companion_link.network.scheduler import ManualScheduler
from companion_link.network.transport import NORMAL_CLOSE_CODE, TransportClosedError

# ============================================================================
# Environment Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def clean_link_env(monkeypatch):
    """Drop COMPANION_LINK_* variables and the cached settings around each test."""
    import os

    for key in list(os.environ):
        if key.startswith("COMPANION_LINK_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Fake Transport
# ============================================================================


class FakeTransport:
    """In-memory transport driven explicitly by tests."""

    def __init__(self, url: str, listener: Any, auto_open: bool = False):
        self.url = url
        self.listener = listener
        self.auto_open = auto_open
        self.sent: list[str] = []
        self.started = False
        self.close_calls: list[tuple[int, str]] = []
        self.send_error: Exception | None = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def closed(self) -> bool:
        return bool(self.close_calls)

    def start(self) -> None:
        self.started = True
        if self.auto_open:
            self.simulate_open()

    def send(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        if not self._open:
            raise TransportClosedError("Transport is not open")
        self.sent.append(data)

    def close(self, code: int = NORMAL_CLOSE_CODE, reason: str = "") -> None:
        self.close_calls.append((code, reason))
        self._open = False

    # Simulation helpers

    def simulate_open(self) -> None:
        self._open = True
        self.listener.handle_transport_open(self)

    def simulate_message(self, data: Any) -> None:
        if not isinstance(data, str):
            data = json.dumps(data)
        self.listener.handle_transport_message(self, data)

    def simulate_error(self, error: BaseException) -> None:
        self.listener.handle_transport_error(self, error)

    def simulate_close(self, code: int = 1006, reason: str = "") -> None:
        self._open = False
        self.listener.handle_transport_close(self, code, reason)

    def sent_messages(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]


class FakeTransportFactory:
    """TransportFactory that records every transport it builds."""

    def __init__(self) -> None:
        self.created: list[FakeTransport] = []
        self.auto_open = False
        self.error: Exception | None = None

    def __call__(self, url: str, listener: Any) -> FakeTransport:
        if self.error is not None:
            raise self.error
        transport = FakeTransport(url, listener, auto_open=self.auto_open)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


class EventRecorder:
    """Subscribes to every topic and keeps what was published, in order."""

    def __init__(self, manager: ConnectionManager):
        self.events: list[tuple[EventTopic, Any]] = []
        for topic in EventTopic:
            manager.subscribe(topic, self._recorder(topic))

    def _recorder(self, topic: EventTopic):
        def record(event: Any) -> None:
            self.events.append((topic, event))

        return record

    def of(self, topic: EventTopic) -> list[Any]:
        return [event for recorded, event in self.events if recorded is topic]

    def topics(self) -> list[EventTopic]:
        return [topic for topic, _ in self.events]

    def error_codes(self) -> list[str]:
        return [event.code.value for event in self.of(EventTopic.ERROR)]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def scheduler():
    """Virtual clock starting at zero."""
    return ManualScheduler()


@pytest.fixture
def transport_factory():
    """Factory producing FakeTransports."""
    return FakeTransportFactory()


@pytest.fixture
def link_config():
    """Connection config with a token and default timings."""
    return ConnectionConfig(url="ws://backend.test/ws", token="test-token")


@pytest.fixture
def manager(link_config, transport_factory, scheduler):
    """ConnectionManager wired to fakes."""
    mgr = ConnectionManager(
        link_config,
        transport_factory=transport_factory,
        scheduler=scheduler,
    )
    yield mgr
    mgr.destroy()


@pytest.fixture
def recorder(manager):
    """Records everything the manager publishes."""
    return EventRecorder(manager)
