"""Custom exceptions for thinkgate.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into three categories:

Configuration Errors (fatal to the operation that needs them):
    - ConfigurationError: Settings file invalid or unreadable
    - BinaryNotFoundError: Backend executable missing
    - ConfigNotFoundError: Backend config file missing

Supervisor Errors:
    - BackendStartError: Backend could not be spawned or died immediately
    - JobParameterError: Auth job invoked without its required parameter

Proxy Errors (never leave the connection handler; answered with HTTP errors):
    - ProtocolParseError: Malformed inbound request (400)
    - UpstreamUnavailableError: Backend cannot be dialled (502)

Usage:
    from thinkgate.exceptions import BinaryNotFoundError, ConfigurationError
"""

from __future__ import annotations

__all__ = [
    "BackendStartError",
    "BinaryNotFoundError",
    "ConfigNotFoundError",
    "ConfigurationError",
    "JobParameterError",
    "ProtocolParseError",
    "ThinkgateError",
    "UpstreamUnavailableError",
]

from pathlib import Path


class ThinkgateError(Exception):
    """Base class for all thinkgate errors.

    Attributes:
        exit_code: Process exit code used by the CLI.
        failure_type: Category string for logging.
    """

    exit_code: int = 1
    failure_type: str = "unknown"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ThinkgateError):
    """Configuration is invalid or incomplete.

    Raised when:
    - Settings file contains invalid JSON
    - Settings file fails Pydantic validation
    - A path the supervisor needs does not exist

    Exit code 16 indicates configuration failure.
    """

    exit_code = 16
    failure_type = "configuration_failure"


class BinaryNotFoundError(ConfigurationError):
    """Backend executable does not exist at the configured path."""

    failure_type = "binary_not_found"

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__(f"binary not found at {self.path}")


class ConfigNotFoundError(ConfigurationError):
    """Backend config file does not exist at the configured path."""

    failure_type = "config_not_found"

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        super().__init__(f"config not found at {self.path}")


# =============================================================================
# Supervisor Errors
# =============================================================================


class BackendStartError(ThinkgateError):
    """Backend process could not be started.

    Raised when:
    - The OS refuses to spawn the executable
    - The process exits during the post-spawn settle interval

    No process is left running when this is raised.
    """

    exit_code = 17
    failure_type = "backend_start_failure"


class JobParameterError(ThinkgateError, ValueError):
    """An auth job that needs a parameter was invoked without one."""

    failure_type = "job_parameter_missing"


# =============================================================================
# Proxy Errors
# =============================================================================


class ProtocolParseError(ThinkgateError):
    """Inbound bytes are not a well-formed HTTP/1.x request."""

    failure_type = "protocol_parse_error"


class UpstreamUnavailableError(ThinkgateError):
    """The backend could not be dialled for a forwarded request."""

    failure_type = "upstream_unavailable"
