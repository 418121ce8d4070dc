"""Server command group for thinkgate CLI.

Starts and stops the backend inside the running daemon.
"""

from __future__ import annotations

__all__ = ["server"]

import click

from ..api_client import api_port_option, api_request
from ..styling import style_success


@click.group()
def server() -> None:
    """Backend process control."""
    pass


@server.command("start")
@api_port_option
def server_start(api_port: int | None) -> None:
    """Start the backend (no-op if running)."""
    result = api_request("POST", "/api/server/start", port=api_port)
    click.echo(style_success(result.get("message") or "Server started"))


@server.command("stop")
@api_port_option
def server_stop(api_port: int | None) -> None:
    """Stop the backend (no-op if stopped)."""
    result = api_request("POST", "/api/server/stop", port=api_port)
    click.echo(style_success(result.get("message") or "Server stopped"))
