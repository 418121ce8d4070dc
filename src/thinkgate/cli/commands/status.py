"""Status command for thinkgate CLI.

Shows backend and proxy status from the running daemon.
"""

from __future__ import annotations

__all__ = ["status"]

import json

import click

from ..api_client import api_port_option, api_request
from ..styling import style_error, style_header, style_label, style_success


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@api_port_option
def status(as_json: bool, api_port: int | None) -> None:
    """Show backend and proxy status."""
    data = api_request("GET", "/api/status", port=api_port)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    server = data.get("server", {})
    proxy = data.get("proxy", {})

    click.echo(style_header("Backend"))
    if server.get("running"):
        click.echo(style_success(f"Running (PID: {server.get('pid')})"))
    else:
        click.echo(style_error("Not running"))
    click.echo(f"  {style_label('State')} {server.get('state', 'unknown')}")
    click.echo(f"  {style_label('Healthy')} {'yes' if server.get('healthy') else 'no'}")
    click.echo()

    click.echo(style_header("Proxy"))
    if proxy.get("running"):
        click.echo(style_success(f"Listening on port {proxy.get('port')}"))
    else:
        click.echo(style_error("Not running"))
