"""CLI command modules for Companion Link.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-command and sets ``parser.set_defaults(func=handler)``.
"""

from . import config_cmd, listen, send
from .config_cmd import cmd_config
from .listen import cmd_listen
from .send import cmd_send

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    listen,
    send,
    config_cmd,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_config",
    "cmd_listen",
    "cmd_send",
]
