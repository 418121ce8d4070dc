"""Logs command for thinkgate CLI.

Prints buffered backend output from the running daemon.
"""

from __future__ import annotations

__all__ = ["logs"]

import click

from ..api_client import api_port_option, api_request
from ..styling import style_dim


@click.command()
@click.option("--limit", "-n", type=click.IntRange(min=1), default=None, help="Show only the newest N lines")
@api_port_option
def logs(limit: int | None, api_port: int | None) -> None:
    """Show buffered backend output, oldest first."""
    params = {"limit": limit} if limit is not None else None
    data = api_request("GET", "/api/logs", port=api_port, params=params)

    lines = data.get("lines", [])
    if not lines:
        click.echo(style_dim("No log lines yet."))
        return
    for line in lines:
        click.echo(line)
