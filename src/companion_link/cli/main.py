#!/usr/bin/env python3
"""
Companion Link CLI - managed WebSocket link to the backend.

Commands:
  companion-link listen                  Stream link events as JSON lines
  companion-link send <type> [payload]   Send one message
  companion-link config                  Show the effective configuration
"""

from __future__ import annotations

import argparse
import logging
import sys

from ..core.logging import configure_logging
from .commands import COMMAND_MODULES

logger = logging.getLogger(__name__)


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="companion-link",
        description="Managed WebSocket link to the companion backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  companion-link listen --duration 60            Watch events for a minute
  companion-link send custom_payload '{"a": 1}'  Send a custom payload
  companion-link send cancel_operation '{"operationId": "op-1"}'
  companion-link config --url wss://host/ws      Show effective settings
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: COMPANION_LINK_LOG_LEVEL)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Emit logs as JSON",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=args.json_logs)

    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
