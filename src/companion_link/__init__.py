# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Companion link - persistent real-time link to the backend service.

Keeps one logical duplex WebSocket connection alive across network
interruptions, detects silent failures with ping/pong probes, and buffers
outbound work while the link is down.

Layout:
  core/     configuration, error taxonomy, logging
  network/  connection lifecycle manager and its collaborators
  cli/      operator entry point (``companion-link``)
"""

__version__ = "0.1.0"

from . import (
    core as core,
)
