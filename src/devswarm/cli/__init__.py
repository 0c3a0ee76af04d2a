"""
devswarm CLI Package.

This module exports the CLI entry points.
"""

from devswarm.cli.main import app, cli

__all__ = [
    "app",
    "cli",
]
