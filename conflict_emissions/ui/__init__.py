"""Command-line interface components."""

from __future__ import annotations

from .cli import app

__all__ = ["app"]
