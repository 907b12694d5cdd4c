# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands.

Results are printed as indented JSON; streamed events as one JSON object
per line so they can be piped into other tools.
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any


def to_jsonable(value: Any) -> Any:
    """Convert link objects (messages, states, payloads) to plain JSON values."""
    if hasattr(value, "to_dict"):
        return to_jsonable(value.to_dict())
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def output_result(data: Any) -> None:
    """Print a command result as pretty JSON."""
    print(json.dumps(to_jsonable(data), indent=2, default=str))


def output_event(channel: str, event: Any) -> None:
    """Print one forwarded event as a JSON line."""
    line = {"channel": channel, "event": to_jsonable(event)}
    print(json.dumps(line, default=str), flush=True)


def output_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)
