"""Start command for thinkgate CLI.

Runs proxy, backend and status API in the foreground until interrupted.
"""

from __future__ import annotations

__all__ = ["start"]

import asyncio
import sys

import click

from thinkgate.config import get_config_path, load_config_strict
from thinkgate.daemon import run_daemon
from thinkgate.exceptions import ConfigurationError, ThinkgateError
from thinkgate.log_config import configure_logging

from ..styling import style_error


@click.command()
@click.option("--proxy-port", type=click.IntRange(1, 65535), default=None, help="Client-facing proxy port")
@click.option("--backend-port", type=click.IntRange(1, 65535), default=None, help="Backend port")
@click.option("--api-port", type=click.IntRange(1, 65535), default=None, help="Status API port")
@click.option("--no-api", is_flag=True, help="Do not start the status API")
@click.option("--debug", is_flag=True, help="Log DEBUG messages to stderr")
def start(
    proxy_port: int | None,
    backend_port: int | None,
    api_port: int | None,
    no_api: bool,
    debug: bool,
) -> None:
    """Start the proxy and the backend in the foreground.

    Ports default to the values in the config file. Stop with Ctrl+C.

    Examples:
        thinkgate start
        thinkgate start --proxy-port 9317 --no-api
    """
    try:
        config = load_config_strict()
    except ConfigurationError as e:
        click.echo(style_error(f"Error: {e}"), err=True)
        click.echo(f"Fix or remove {get_config_path()} and try again.", err=True)
        sys.exit(e.exit_code)

    configure_logging(config, debug=debug)

    try:
        asyncio.run(
            run_daemon(
                config,
                proxy_port=proxy_port,
                backend_port=backend_port,
                api_port=api_port,
                serve_api=not no_api,
            )
        )
    except ThinkgateError as e:
        click.echo(style_error(f"Error: {e}"), err=True)
        sys.exit(e.exit_code)
    except RuntimeError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
