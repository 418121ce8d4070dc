"""Login command for thinkgate CLI.

Starts a browser login flow through the running daemon's backend.
"""

from __future__ import annotations

__all__ = ["login"]

import sys

import click

from thinkgate.supervisor.jobs import JobKind

from ..api_client import api_port_option, api_request
from ..styling import style_error, style_success


@click.command()
@click.argument("service", type=click.Choice([k.value for k in JobKind], case_sensitive=False))
@click.option("--email", help="Account e-mail (required for qwen)")
@api_port_option
def login(service: str, email: str | None, api_port: int | None) -> None:
    """Log in to SERVICE through the backend.

    Opens a browser for the provider's login page.

    Examples:
        thinkgate login claude
        thinkgate login qwen --email me@example.com
    """
    if JobKind.from_name(service).spec.requires_parameter and not email:
        raise click.UsageError(f"{service} login requires --email")

    body: dict[str, str] = {"service": service.lower()}
    if email:
        body["email"] = email

    result = api_request("POST", "/api/auth/connect", port=api_port, json_data=body)

    if result.get("success"):
        click.echo(style_success(result.get("message", "Login started")))
        return

    click.echo(style_error(result.get("message", "Login failed")), err=True)
    if result.get("error"):
        click.echo(result["error"], err=True)
    sys.exit(1)
