"""Command-line interface for thinkgate.

Provides commands for running the proxy daemon, querying and controlling a
running daemon through its status API, and managing settings.
"""

from .main import cli, main

__all__ = ["cli", "main"]
