"""Tests for core.config module."""

from __future__ import annotations

from companion_link.core.config import LinkSettings, clear_config_cache, get_config


class TestLinkSettingsDefaults:
    """Test default values."""

    def test_connection_defaults(self):
        settings = LinkSettings()
        assert settings.ws_url == "ws://localhost:8000/ws"
        assert settings.ws_token is None
        assert settings.token_query_param == "token"
        assert settings.connection_timeout_ms == 10000

    def test_reconnect_defaults(self):
        settings = LinkSettings()
        assert settings.auto_reconnect is True
        assert settings.reconnect_interval_ms == 1000
        assert settings.max_reconnect_interval_ms == 30000
        assert settings.reconnect_decay == 1.5
        assert settings.max_reconnect_attempts == 0

    def test_keepalive_and_queue_defaults(self):
        settings = LinkSettings()
        assert settings.ping_interval_ms == 30000
        assert settings.pong_timeout_ms == 5000
        assert settings.max_queue_size == 0

    def test_logging_defaults(self):
        settings = LinkSettings()
        assert settings.log_level == "INFO"
        assert settings.log_format == ""
        assert settings.log_file is None


class TestLinkSettingsEnvironment:
    """Test values read from COMPANION_LINK_* variables."""

    def test_url_and_token(self, monkeypatch):
        monkeypatch.setenv("COMPANION_LINK_URL", "wss://api.example.com/ws")
        monkeypatch.setenv("COMPANION_LINK_TOKEN", "secret")
        settings = LinkSettings()
        assert settings.ws_url == "wss://api.example.com/ws"
        assert settings.ws_token == "secret"

    def test_numeric_values(self, monkeypatch):
        monkeypatch.setenv("COMPANION_LINK_RECONNECT_DECAY", "2.0")
        monkeypatch.setenv("COMPANION_LINK_MAX_RECONNECT_ATTEMPTS", "7")
        monkeypatch.setenv("COMPANION_LINK_MAX_QUEUE_SIZE", "100")
        settings = LinkSettings()
        assert settings.reconnect_decay == 2.0
        assert settings.max_reconnect_attempts == 7
        assert settings.max_queue_size == 100

    def test_boolean_value(self, monkeypatch):
        monkeypatch.setenv("COMPANION_LINK_AUTO_RECONNECT", "false")
        assert LinkSettings().auto_reconnect is False


class TestGetConfig:
    """Test the cached accessor."""

    def test_returns_same_instance(self):
        assert get_config() is get_config()

    def test_clear_cache_reloads(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("COMPANION_LINK_LOG_LEVEL", "DEBUG")
        clear_config_cache()
        second = get_config()
        assert second is not first
        assert second.log_level == "DEBUG"
