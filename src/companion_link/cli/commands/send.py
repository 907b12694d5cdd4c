"""``companion-link send`` - send one message over the link."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any

from ...core.exceptions import LinkException
from ...network.config import ConnectionConfig
from ...network.messages import MessageType
from ...network.session import LinkSession, StaticTokenProvider
from ..output import output_error, output_event, output_result
from ..utils import add_connection_arguments, build_connection_config

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``send`` command."""
    send_parser = subparsers.add_parser(
        "send",
        help="Connect, send one message and disconnect",
    )
    send_parser.add_argument(
        "type",
        choices=[t.value for t in MessageType],
        help="Message type",
    )
    send_parser.add_argument(
        "payload",
        nargs="?",
        default="null",
        help="Message payload as a JSON string (default: null)",
    )
    send_parser.add_argument("--correlation-id", help="Correlation id to attach")
    send_parser.add_argument(
        "--wait",
        type=float,
        default=0.5,
        metavar="SECONDS",
        help="Keep the link open this long after sending, printing events (default: 0.5)",
    )
    add_connection_arguments(send_parser)
    send_parser.set_defaults(func=cmd_send)


def cmd_send(args: argparse.Namespace) -> int:
    """Send a single message."""
    try:
        payload = json.loads(args.payload)
    except json.JSONDecodeError as e:
        output_error(f"Payload is not valid JSON: {e}")
        return 1

    try:
        config = build_connection_config(args)
    except LinkException as e:
        output_error(e.message)
        return 1

    try:
        return asyncio.run(_send(config, args.type, payload, args.correlation_id, args.wait))
    except KeyboardInterrupt:
        return 1


async def _send(
    config: ConnectionConfig,
    message_type: str,
    payload: Any,
    correlation_id: str | None,
    wait: float,
) -> int:
    session = LinkSession(config, StaticTokenProvider(config.token), sink=output_event)
    try:
        if not await session.open():
            output_error("Could not connect to backend")
            return 1

        message = session.send(message_type, payload, correlation_id)
        if message is None:
            output_error("Message was rejected")
            return 1

        # Gives the writer a chance to flush before the link is closed
        await asyncio.sleep(max(wait, 0))
        output_result({"sent": message.to_dict()})
        return 0
    finally:
        session.dispose()
