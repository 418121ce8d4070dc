"""Config command group for thinkgate CLI.

Provides configuration management subcommands.
"""

from __future__ import annotations

__all__ = ["config"]

import json
import sys

import click

from thinkgate.config import (
    AppConfig,
    get_config_path,
    get_system_log_path,
    load_config_strict,
    save_config,
)
from thinkgate.exceptions import ConfigurationError

from ..styling import style_error, style_header, style_success


def _default_marker() -> str:
    """Return styled (default) marker."""
    return click.style(" (default)", dim=True)


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("path")
def config_path() -> None:
    """Print the config file location."""
    click.echo(str(get_config_path()))


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def config_show(as_json: bool) -> None:
    """Display current configuration.

    Values marked (default) are not in the config file.
    """
    config_file_path = get_config_path()
    try:
        loaded_config = load_config_strict(config_file_path)
    except ConfigurationError as e:
        click.echo(style_error(f"Error: {e}"), err=True)
        sys.exit(e.exit_code)

    if as_json:
        config_dict = loaded_config.model_dump(mode="json")
        config_dict["_computed"] = {
            "config_file": str(config_file_path),
            "system_log": str(get_system_log_path(loaded_config)),
        }
        click.echo(json.dumps(config_dict, indent=2))
        return

    explicit = loaded_config.model_fields_set

    click.echo("\nthinkgate configuration:\n")
    click.echo(style_header("Settings"))
    for name, value in loaded_config.model_dump().items():
        marker = "" if name in explicit else _default_marker()
        click.echo(f"  {name}: {value}{marker}")
    click.echo()
    click.echo(f"Config file: {config_file_path}")
    click.echo(f"System log: {get_system_log_path(loaded_config)}")


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def config_init(force: bool) -> None:
    """Write a config file with default settings."""
    config_file_path = get_config_path()
    if config_file_path.exists() and not force:
        click.echo(style_error(f"Config already exists at {config_file_path}"), err=True)
        click.echo("Use --force to overwrite.", err=True)
        sys.exit(1)

    try:
        written = save_config(AppConfig(), config_file_path)
    except OSError as e:
        click.echo(style_error(f"Failed to write config: {e}"), err=True)
        sys.exit(1)
    click.echo(style_success(f"Config written to {written}"))
