# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Companion Link CLI - drive the backend link from a terminal."""

from .main import app, main

__all__ = ["main", "app"]
