"""Main CLI entry point for thinkgate.

Defines the CLI group and registers all subcommands.

Commands:
    config  - Configuration management (path, show, init)
    login   - Start a browser login flow through the backend
    logs    - Show buffered backend output
    server  - Backend control (start, stop)
    start   - Run proxy, backend and status API in the foreground
    status  - Show backend and proxy status

Subcommand help:
    thinkgate COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from thinkgate import __version__

from .commands.config import config
from .commands.login import login
from .commands.logs import logs
from .commands.server import server
from .commands.start import start
from .commands.status import status


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  thinkgate config init            Write default settings
  thinkgate start                  Run proxy (8317) and backend (8318)
  thinkgate login claude           Log in through the backend

Thinking budgets:
  Send model "claude-<name>-thinking-<budget>" to the proxy port, e.g.
  claude-sonnet-4-5-thinking-5000. The suffix is stripped and a thinking
  block with that budget is added to the request.
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """thinkgate: thinking-budget proxy and backend supervisor."""
    if version:
        click.echo(f"thinkgate {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(config)
cli.add_command(login)
cli.add_command(logs)
cli.add_command(server)
cli.add_command(start)
cli.add_command(status)


def main() -> None:
    """CLI entry point."""
    cli()
