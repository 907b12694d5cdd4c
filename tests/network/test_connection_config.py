"""Tests for ConnectionConfig."""

from __future__ import annotations

import pytest
from companion_link.core.config import LinkSettings
from companion_link.core.exceptions import ConfigException
from companion_link.network.config import ConnectionConfig


class TestDefaults:
    """Documented defaults."""

    def test_defaults(self):
        config = ConnectionConfig()
        assert config.url == "ws://localhost:8000/ws"
        assert config.token is None
        assert config.auto_reconnect is True
        assert config.reconnect_interval_ms == 1000
        assert config.max_reconnect_interval_ms == 30000
        assert config.reconnect_decay == 1.5
        assert config.max_reconnect_attempts == 0
        assert config.ping_interval_ms == 30000
        assert config.pong_timeout_ms == 5000
        assert config.connection_timeout_ms == 10000
        assert config.max_queue_size == 0
        assert config.token_query_param == "token"

    def test_immutable(self):
        with pytest.raises(AttributeError):
            ConnectionConfig().token = "x"


class TestValidation:
    """Out-of-range values are rejected."""

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"url": ""}, "url"),
            ({"reconnect_interval_ms": 0}, "reconnect_interval_ms"),
            ({"ping_interval_ms": -1}, "ping_interval_ms"),
            ({"pong_timeout_ms": 0}, "pong_timeout_ms"),
            ({"connection_timeout_ms": 0}, "connection_timeout_ms"),
            ({"reconnect_interval_ms": 5000, "max_reconnect_interval_ms": 1000}, "max_reconnect_interval_ms"),
            ({"reconnect_decay": 0.5}, "reconnect_decay"),
            ({"max_reconnect_attempts": -1}, "max_reconnect_attempts"),
            ({"max_queue_size": -5}, "max_queue_size"),
        ],
    )
    def test_rejected(self, overrides, field):
        with pytest.raises(ConfigException) as exc_info:
            ConnectionConfig(**overrides)
        assert exc_info.value.field == field


class TestDerivation:
    """New snapshots from old ones."""

    def test_with_token(self):
        original = ConnectionConfig(url="ws://a/ws")
        updated = original.with_token("t-1")

        assert updated.token == "t-1"
        assert updated.url == "ws://a/ws"
        assert original.token is None

    def test_to_dict_redacts_token(self):
        data = ConnectionConfig(token="secret").to_dict()
        assert data["token"] == "[REDACTED]"
        assert ConnectionConfig(token="secret").to_dict(redact=False)["token"] == "secret"
        assert ConnectionConfig().to_dict()["token"] is None

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("COMPANION_LINK_URL", "wss://api.test/ws")
        monkeypatch.setenv("COMPANION_LINK_TOKEN", "env-token")
        monkeypatch.setenv("COMPANION_LINK_MAX_RECONNECT_ATTEMPTS", "4")

        config = ConnectionConfig.from_settings(LinkSettings())

        assert config.url == "wss://api.test/ws"
        assert config.token == "env-token"
        assert config.max_reconnect_attempts == 4

    def test_from_settings_overrides(self):
        config = ConnectionConfig.from_settings(
            LinkSettings(), url="ws://override/ws", token=None, auto_reconnect=False
        )
        assert config.url == "ws://override/ws"
        assert config.token is None
        assert config.auto_reconnect is False
