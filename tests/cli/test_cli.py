"""Tests for the Companion Link CLI.

Tests cover:
1. Argument parsing
2. Output formatting
3. config / send / listen handlers
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from companion_link.cli.commands.config_cmd import cmd_config
from companion_link.cli.commands.listen import cmd_listen
from companion_link.cli.commands.send import cmd_send
from companion_link.cli.main import app, main
from companion_link.cli.output import output_event, to_jsonable
from companion_link.cli.utils import build_connection_config
from companion_link.network.connection_manager import ConnectionState, ConnectionStatus
from companion_link.network.messages import Message, MessageType, ProgressUpdate


def make_args(**kwargs):
    defaults = {"url": None, "token": None, "timeout": None, "no_reconnect": False}
    defaults.update(kwargs)
    return MagicMock(**defaults)


def mock_session(opened=True, message=None):
    session = MagicMock()
    session.open = AsyncMock(return_value=opened)
    session.send.return_value = message
    return session


# ============================================================================
# Argument Parsing
# ============================================================================


class TestArgumentParsing:
    """Test the parser built by app()."""

    def test_listen(self):
        args = app().parse_args(["listen", "--duration", "5", "--url", "ws://x/ws"])
        assert args.command == "listen"
        assert args.duration == 5.0
        assert args.url == "ws://x/ws"
        assert args.func is cmd_listen

    def test_send(self):
        args = app().parse_args(["send", "custom_payload", '{"a": 1}', "--correlation-id", "c"])
        assert args.type == "custom_payload"
        assert args.payload == '{"a": 1}'
        assert args.correlation_id == "c"
        assert args.wait == 0.5
        assert args.func is cmd_send

    def test_send_rejects_unknown_type(self):
        with pytest.raises(SystemExit):
            app().parse_args(["send", "teleport"])

    def test_config(self):
        args = app().parse_args(["--log-level", "DEBUG", "config", "--no-reconnect"])
        assert args.log_level == "DEBUG"
        assert args.no_reconnect is True
        assert args.func is cmd_config

    def test_command_required(self):
        with pytest.raises(SystemExit):
            app().parse_args([])


# ============================================================================
# Output
# ============================================================================


class TestOutput:
    """Test JSON conversion of link objects."""

    def test_state_to_json(self):
        state = ConnectionState(status=ConnectionStatus.CONNECTED, connected_at=5)
        data = to_jsonable(state)
        assert data["status"] == "connected"
        assert data["connected_at"] == 5

    def test_message_to_json(self):
        message = Message.create(MessageType.PING, {"timestamp": 1}, timestamp=1)
        assert to_jsonable(message)["messageId"] == message.message_id

    def test_dataclass_to_json(self):
        update = ProgressUpdate(operation_id="op", progress=10, step="s")
        assert to_jsonable(update)["operation_id"] == "op"

    def test_output_event_is_one_line(self, capsys):
        output_event("ws-connected", ConnectionState(status=ConnectionStatus.CONNECTED))
        out = capsys.readouterr().out
        assert out.count("\n") == 1
        assert json.loads(out)["channel"] == "ws-connected"


# ============================================================================
# Handlers
# ============================================================================


class TestBuildConnectionConfig:
    """Environment plus CLI overrides."""

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("COMPANION_LINK_URL", "ws://env/ws")
        config = build_connection_config(
            make_args(token="cli-token", timeout=2500, no_reconnect=True)
        )
        assert config.url == "ws://env/ws"
        assert config.token == "cli-token"
        assert config.connection_timeout_ms == 2500
        assert config.auto_reconnect is False


class TestConfigCommand:
    """config prints the effective settings."""

    def test_prints_redacted_config(self, capsys, monkeypatch):
        monkeypatch.setenv("COMPANION_LINK_TOKEN", "very-secret")

        assert cmd_config(make_args()) == 0

        out = capsys.readouterr().out
        assert "very-secret" not in out
        data = json.loads(out)
        assert data["connection"]["token"] == "[REDACTED]"
        assert data["logging"]["level"] == "INFO"

    def test_invalid_config(self, capsys):
        assert cmd_config(make_args(timeout=-1)) == 1
        assert "connection_timeout_ms" in capsys.readouterr().err


class TestSendCommand:
    """send opens, sends and disposes."""

    def test_invalid_payload(self, capsys):
        assert cmd_send(make_args(type="custom_payload", payload="{oops")) == 1
        assert "not valid JSON" in capsys.readouterr().err

    @patch("companion_link.cli.commands.send.LinkSession")
    def test_send_success(self, mock_session_cls, capsys):
        message = Message.create(MessageType.CUSTOM_PAYLOAD, {"a": 1}, timestamp=1)
        session = mock_session(message=message)
        mock_session_cls.return_value = session

        result = cmd_send(
            make_args(
                type="custom_payload",
                payload='{"a": 1}',
                correlation_id=None,
                wait=0,
                token="t",
            )
        )

        assert result == 0
        session.send.assert_called_once_with("custom_payload", {"a": 1}, None)
        session.dispose.assert_called_once()
        assert json.loads(capsys.readouterr().out)["sent"]["payload"] == {"a": 1}

    @patch("companion_link.cli.commands.send.LinkSession")
    def test_send_connect_failure(self, mock_session_cls):
        session = mock_session(opened=False)
        mock_session_cls.return_value = session

        result = cmd_send(
            make_args(type="ping", payload="null", correlation_id=None, wait=0, token="t")
        )

        assert result == 1
        session.send.assert_not_called()
        session.dispose.assert_called_once()


class TestListenCommand:
    """listen streams until the duration elapses."""

    @patch("companion_link.cli.commands.listen.LinkSession")
    def test_listen_for_duration(self, mock_session_cls):
        session = mock_session()
        mock_session_cls.return_value = session

        assert cmd_listen(make_args(duration=0, token="t")) == 0
        session.open.assert_awaited_once()
        session.dispose.assert_called_once()

    @patch("companion_link.cli.commands.listen.LinkSession")
    def test_listen_connect_failure(self, mock_session_cls):
        mock_session_cls.return_value = mock_session(opened=False)
        assert cmd_listen(make_args(duration=0, token="t")) == 1


class TestMain:
    """Entry point dispatch."""

    @patch("companion_link.cli.main.configure_logging")
    def test_main_dispatches(self, mock_configure, capsys):
        assert main(["config", "--url", "ws://cli/ws"]) == 0
        mock_configure.assert_called_once_with(level=None, json_format=None)
        assert json.loads(capsys.readouterr().out)["connection"]["url"] == "ws://cli/ws"
