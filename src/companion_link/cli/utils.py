"""Utility functions for Companion Link CLI."""

from __future__ import annotations

import argparse

from ..core.config import get_config
from ..network.config import ConnectionConfig


def add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every command that opens the link."""
    parser.add_argument("--url", help="Backend WebSocket URL (default: COMPANION_LINK_URL)")
    parser.add_argument("--token", help="Bearer token (default: COMPANION_LINK_TOKEN)")
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="MS",
        help="Connection timeout in milliseconds",
    )
    parser.add_argument(
        "--no-reconnect",
        action="store_true",
        help="Give up instead of reconnecting after a failure",
    )


def build_connection_config(args: argparse.Namespace) -> ConnectionConfig:
    """Effective connection config: environment settings plus CLI overrides.

    Raises:
        ConfigException: If the resulting settings are invalid
    """
    overrides = {
        "url": getattr(args, "url", None),
        "token": getattr(args, "token", None),
        "connection_timeout_ms": getattr(args, "timeout", None),
    }
    if getattr(args, "no_reconnect", False):
        overrides["auto_reconnect"] = False
    return ConnectionConfig.from_settings(get_config(), **overrides)
