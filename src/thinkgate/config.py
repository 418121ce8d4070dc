"""Configuration for thinkgate.

Defines the settings model and the helpers that resolve the backend binary
and the backend's own config file. Settings are stored as JSON at the
OS-appropriate location.

Example usage:
    # Load from settings file (defaults if missing or invalid)
    config = load_config()

    # Resolve what the supervisor needs
    binary = resolve_binary_path(config)
    backend_config = resolve_backend_config_path(config)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "DEFAULT_LOG_DIR",
    "MINIMAL_BACKEND_CONFIG",
    "get_app_dir",
    "get_config_path",
    "get_log_dir",
    "get_system_log_path",
    "load_config",
    "load_config_strict",
    "resolve_backend_config_path",
    "resolve_binary_path",
    "save_config",
    "sync_backend_port",
]

import json
import logging
import re
import shutil
import sys
from pathlib import Path

import click
from platformdirs import user_log_dir
from pydantic import BaseModel, Field, ValidationError

from thinkgate.constants import (
    APP_NAME,
    BACKEND_BINARY_NAME,
    BACKEND_CONFIG_FILENAME,
    BACKEND_DEFAULT_CONFIG_FILENAME,
    DEFAULT_API_PORT,
    DEFAULT_BACKEND_PORT,
    DEFAULT_LOG_BUFFER_CAPACITY,
    DEFAULT_PROXY_PORT,
)
from thinkgate.exceptions import BinaryNotFoundError, ConfigurationError

_logger = logging.getLogger(f"{APP_NAME}.config")

# Default log directory (platform-specific, follows OS conventions)
DEFAULT_LOG_DIR = user_log_dir(APP_NAME)

# Written when no backend config exists and no template ships with the binary.
# The port must match the backend port the proxy dials.
MINIMAL_BACKEND_CONFIG = """\
# Backend configuration (auto-generated)
# Backend port (must match thinkgate backend_port)
port: {port}

# Directory where authentication tokens are stored
auth-dir: ~/.cli-proxy-api

# Remote management
remote-management:
  allow-remote: false
  secret-key: ""
  disable-control-panel: false

# Client API keys
api-keys:
  - dummy-not-used

# Settings
debug: false
logging-to-file: false
usage-statistics-enabled: false
proxy-url: ''
request-retry: 3

quota-exceeded:
  switch-project: true
  switch-preview-model: true

ws-auth: false
"""


class AppConfig(BaseModel):
    """thinkgate settings.

    Attributes:
        proxy_port: Client-facing port of the transforming proxy.
        backend_port: Port the backend listens on.
        api_port: Port of the status API.
        binary_path: Backend executable. None means auto-detect.
        backend_config_path: Backend config file. None means the app directory.
        log_buffer_capacity: Backend output lines kept in memory.
        log_dir: Directory for the system log (WARNING+ only).
        kill_orphans: Kill stray backend processes before starting.
    """

    proxy_port: int = Field(
        default=DEFAULT_PROXY_PORT,
        ge=1024,
        le=65535,
        description="Client-facing proxy port",
    )
    backend_port: int = Field(
        default=DEFAULT_BACKEND_PORT,
        ge=1024,
        le=65535,
        description="Backend listening port",
    )
    api_port: int = Field(
        default=DEFAULT_API_PORT,
        ge=1024,
        le=65535,
        description="Status API port",
    )
    binary_path: str | None = Field(
        default=None,
        description="Backend executable path (auto-detected when unset)",
    )
    backend_config_path: str | None = Field(
        default=None,
        description="Backend config file path (created in the app directory when unset)",
    )
    log_buffer_capacity: int = Field(
        default=DEFAULT_LOG_BUFFER_CAPACITY,
        ge=1,
        description="Backend output lines kept in memory",
    )
    log_dir: str = Field(
        default=DEFAULT_LOG_DIR,
        min_length=1,
        description="Directory for the system log",
    )
    kill_orphans: bool = Field(
        default=True,
        description="Kill stray backend processes before starting",
    )

    model_config = {"extra": "ignore"}  # Ignore unknown fields for forward compat


def get_app_dir() -> Path:
    """Get the OS-appropriate application directory.

    Returns:
        Path to the application directory (click.get_app_dir).
    """
    return Path(click.get_app_dir(APP_NAME))


def get_config_path() -> Path:
    """Get the full path to the settings file.

    Returns:
        Path to config.json in the app directory.
    """
    return get_app_dir() / "config.json"


def get_log_dir(config: AppConfig) -> Path:
    """Get log directory.

    Args:
        config: Settings.

    Returns:
        Path: Expanded log directory.
    """
    return Path(config.log_dir).expanduser()


def get_system_log_path(config: AppConfig) -> Path:
    """Get full path to the system log file.

    Args:
        config: Settings.

    Returns:
        Path: <log_dir>/system.jsonl.
    """
    return get_log_dir(config) / "system.jsonl"


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load settings from file.

    If the file doesn't exist, returns default settings.
    Invalid JSON or validation errors return defaults with a warning.

    Args:
        config_path: Settings file. Defaults to get_config_path().

    Returns:
        AppConfig: Loaded or default settings.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        return AppConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
        return AppConfig.model_validate(data)
    except json.JSONDecodeError as e:
        _logger.warning(
            {
                "event": "config_invalid_json",
                "message": f"Invalid JSON in settings, using defaults: {e}",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"config_path": str(config_path)},
            }
        )
        return AppConfig()
    except ValidationError as e:
        _logger.warning(
            {
                "event": "config_validation_failed",
                "message": f"Invalid settings values, using defaults: {e}",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"config_path": str(config_path)},
            }
        )
        return AppConfig()
    except OSError as e:
        _logger.warning(
            {
                "event": "config_read_failed",
                "message": f"Failed to read settings file, using defaults: {e}",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"config_path": str(config_path)},
            }
        )
        return AppConfig()


def load_config_strict(config_path: Path | None = None) -> AppConfig:
    """Load settings, raising on invalid files.

    A missing file is not an error (defaults apply); a file that exists
    but cannot be read or validated is.

    Args:
        config_path: Settings file. Defaults to get_config_path().

    Returns:
        AppConfig: Validated settings.

    Raises:
        ConfigurationError: If the file is unreadable, not JSON, or invalid.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        return AppConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config in {config_path}: {e}") from e


def save_config(config: AppConfig, config_path: Path | None = None) -> Path:
    """Save settings to file.

    Creates the directory if needed and restricts the file to the owner.

    Args:
        config: Settings to save.
        config_path: Destination. Defaults to get_config_path().

    Returns:
        Path the settings were written to.

    Raises:
        OSError: If unable to write the file.
    """
    config_path = config_path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with config_path.open("w", encoding="utf-8") as f:
        json.dump(config.model_dump(), f, indent=2)
        f.write("\n")

    config_path.chmod(0o600)
    return config_path


# =============================================================================
# Backend Path Resolution
# =============================================================================


def _executable_dir() -> Path:
    """Directory of the running program (script or frozen executable)."""
    return Path(sys.argv[0]).resolve().parent


def resolve_binary_path(config: AppConfig) -> Path:
    """Find the backend executable.

    Order: configured path, beside the running program, then PATH.

    Args:
        config: Settings.

    Returns:
        Path to the backend executable.

    Raises:
        BinaryNotFoundError: If no candidate exists.
    """
    if config.binary_path:
        path = Path(config.binary_path).expanduser()
        if not path.exists():
            raise BinaryNotFoundError(path)
        return path

    sibling = _executable_dir() / BACKEND_BINARY_NAME
    if sibling.exists():
        return sibling

    on_path = shutil.which(BACKEND_BINARY_NAME)
    if on_path is not None:
        return Path(on_path)

    raise BinaryNotFoundError(sibling)


# Top-level "port:" line of a backend YAML config
_PORT_LINE = re.compile(r"^port:[ \t]*([^\s#]*).*$", re.MULTILINE)


def sync_backend_port(config_path: Path, port: int) -> bool:
    """Point the backend config's top-level ``port:`` line at port.

    The line is rewritten in place, or prepended when the file has none.
    Everything else in the file is left untouched.

    Args:
        config_path: Backend config file (must exist).
        port: Port the backend must listen on.

    Returns:
        True if the file was changed.

    Raises:
        OSError: If the file cannot be read or written.
    """
    text = config_path.read_text(encoding="utf-8")
    wanted = f"port: {port}"
    match = _PORT_LINE.search(text)
    if match is None:
        text = f"{wanted}\n{text}"
    elif match.group(0) == wanted:
        return False
    else:
        text = text[: match.start()] + wanted + text[match.end() :]

    config_path.write_text(text, encoding="utf-8")
    _logger.info(
        {
            "event": "backend_config_port_updated",
            "message": f"Set port {port} in {config_path}",
        }
    )
    return True


def _check_backend_port(config_path: Path, port: int) -> None:
    """Fail fast when a user-supplied backend config names another port."""
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError:
        return  # Missing or unreadable; the supervisor reports it on start
    match = _PORT_LINE.search(text)
    if match is not None and match.group(1).strip("\"'") != str(port):
        raise ConfigurationError(
            f"Backend config {config_path} sets port {match.group(1) or '(empty)'}, "
            f"but the backend port is {port}. Change one of them so they match."
        )


def resolve_backend_config_path(
    config: AppConfig,
    binary_path: Path | None = None,
    backend_port: int | None = None,
) -> Path:
    """Find the backend config file, creating it when missing.

    A configured path is never modified: it must already name the backend
    port (or omit the ``port:`` line), otherwise ConfigurationError is
    raised. Without one the file lives in the app directory. It is seeded
    from a template shipped beside the binary, or from MINIMAL_BACKEND_CONFIG,
    and its ``port:`` line is kept in step with the backend port.

    Args:
        config: Settings.
        binary_path: Backend executable, used to locate the template.
        backend_port: Port the backend must listen on. Defaults to
            config.backend_port.

    Returns:
        Path to the backend config file.

    Raises:
        ConfigurationError: If the file cannot be created or updated, or a
            configured file names a different port.
    """
    port = backend_port if backend_port is not None else config.backend_port

    if config.backend_config_path:
        configured = Path(config.backend_config_path).expanduser()
        _check_backend_port(configured, port)
        return configured

    config_path = get_app_dir() / BACKEND_CONFIG_FILENAME

    try:
        if not config_path.exists():
            config_path.parent.mkdir(parents=True, exist_ok=True)
            template = binary_path.parent / BACKEND_DEFAULT_CONFIG_FILENAME if binary_path else None
            if template is not None and template.exists():
                shutil.copyfile(template, config_path)
                _logger.info(
                    {
                        "event": "backend_config_created",
                        "message": f"Created {config_path} from {template}",
                    }
                )
            else:
                config_path.write_text(MINIMAL_BACKEND_CONFIG.format(port=port), encoding="utf-8")
                _logger.info(
                    {
                        "event": "backend_config_created",
                        "message": f"Created minimal backend config at {config_path}",
                    }
                )
        sync_backend_port(config_path, port)
    except OSError as e:
        raise ConfigurationError(f"Failed to prepare backend config at {config_path}: {e}") from e

    return config_path
