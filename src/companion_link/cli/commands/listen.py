"""``companion-link listen`` - stream link events as JSON lines."""

from __future__ import annotations

import argparse
import asyncio
import logging

from ...core.exceptions import LinkException
from ...network.config import ConnectionConfig
from ...network.session import LinkSession, StaticTokenProvider
from ..output import output_error, output_event
from ..utils import add_connection_arguments, build_connection_config

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``listen`` command."""
    listen_parser = subparsers.add_parser(
        "listen",
        help="Connect and print every link event until interrupted",
    )
    add_connection_arguments(listen_parser)
    listen_parser.add_argument(
        "--duration",
        type=float,
        metavar="SECONDS",
        help="Stop after this many seconds (default: run until Ctrl-C)",
    )
    listen_parser.set_defaults(func=cmd_listen)


def cmd_listen(args: argparse.Namespace) -> int:
    """Stream forwarded events to stdout."""
    try:
        config = build_connection_config(args)
    except LinkException as e:
        output_error(e.message)
        return 1

    try:
        return asyncio.run(_listen(config, args.duration))
    except KeyboardInterrupt:
        return 0


async def _listen(config: ConnectionConfig, duration: float | None) -> int:
    session = LinkSession(config, StaticTokenProvider(config.token), sink=output_event)
    try:
        if not await session.open():
            output_error("Could not connect to backend")
            return 1
        if duration is not None:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
        return 0
    finally:
        session.dispose()
