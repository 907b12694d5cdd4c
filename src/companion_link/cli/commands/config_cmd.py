"""``companion-link config`` - show the effective link configuration."""

from __future__ import annotations

import argparse

from ...core.config import get_config
from ...core.exceptions import LinkException
from ..output import output_error, output_result
from ..utils import add_connection_arguments, build_connection_config


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``config`` command."""
    config_parser = subparsers.add_parser(
        "config",
        help="Show the effective configuration (token redacted)",
    )
    add_connection_arguments(config_parser)
    config_parser.set_defaults(func=cmd_config)


def cmd_config(args: argparse.Namespace) -> int:
    """Display connection and logging configuration."""
    try:
        config = build_connection_config(args)
    except LinkException as e:
        output_error(e.message)
        return 1

    settings = get_config()
    output_result(
        {
            "connection": config.to_dict(redact=True),
            "logging": {
                "level": settings.log_level,
                "format": settings.log_format,
                "file": settings.log_file,
            },
        }
    )
    return 0
