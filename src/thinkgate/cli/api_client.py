"""API client helper for CLI commands that talk to a running daemon.

The daemon's status API listens on 127.0.0.1:<api_port> without
authentication. Commands that only touch local files (config) do not use
this module.
"""

from __future__ import annotations

__all__ = [
    "DaemonAPIError",
    "DaemonNotRunningError",
    "api_port_option",
    "api_request",
]

import json
import time
from typing import Any, Callable, TypeVar

import click
import httpx

from thinkgate.config import load_config
from thinkgate.constants import BACKEND_HOST, CLI_HTTP_TIMEOUT_SECONDS

F = TypeVar("F", bound=Callable[..., Any])


class DaemonNotRunningError(click.ClickException):
    """Raised when the status API cannot be reached."""

    def __init__(self, port: int) -> None:
        super().__init__(f"thinkgate is not running (no API on port {port}).\nStart it with: thinkgate start")
        self.port = port


class DaemonAPIError(click.ClickException):
    """Raised when an API request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        if status_code:
            super().__init__(f"API error ({status_code}): {message}")
        else:
            super().__init__(f"API error: {message}")
        self.status_code = status_code


def api_port_option(func: F) -> F:
    """Add --api-port to a command (defaults to the configured port)."""
    return click.option(
        "--api-port",
        type=int,
        default=None,
        help="Status API port (default: from config)",
    )(func)


def _error_message(response: httpx.Response) -> str:
    """Extract the message from a structured error response."""
    try:
        detail = response.json().get("detail", response.text)
    except (json.JSONDecodeError, AttributeError):
        return response.text or f"HTTP {response.status_code}"
    if isinstance(detail, dict):
        return str(detail.get("message", detail))
    return str(detail)


def api_request(
    method: str,
    endpoint: str,
    *,
    port: int | None = None,
    json_data: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
    timeout: float = CLI_HTTP_TIMEOUT_SECONDS,
    max_retries: int = 3,
    backoff_ms: int = 100,
) -> dict[str, Any]:
    """Make an API request to the running daemon.

    Retries connection failures with exponential backoff for the window
    right after 'thinkgate start'.

    Args:
        method: HTTP method (GET, POST).
        endpoint: API endpoint path (e.g., "/api/status").
        port: API port. Defaults to the configured api_port.
        json_data: Optional JSON body.
        params: Optional query parameters.
        timeout: Request timeout in seconds.
        max_retries: Maximum connection attempts.
        backoff_ms: Initial backoff in milliseconds (doubles each retry).

    Returns:
        Parsed JSON object.

    Raises:
        DaemonNotRunningError: If the API cannot be reached.
        DaemonAPIError: If the API returns an error status.
    """
    effective_port = port if port is not None else load_config().api_port
    base_url = f"http://{BACKEND_HOST}:{effective_port}"
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            with httpx.Client(base_url=base_url, timeout=timeout) as client:
                response = client.request(method, endpoint, json=json_data, params=params)
                response.raise_for_status()
                result = response.json()
                if isinstance(result, dict):
                    return result
                return {"value": result}

        except (httpx.ConnectError, OSError) as e:
            last_error = e
            if attempt < max_retries - 1:
                # Exponential backoff: 100ms, 200ms, 400ms
                time.sleep(backoff_ms / 1000 * (2**attempt))
            continue

        except httpx.HTTPStatusError as e:
            # API returned error status - don't retry, it's a real error
            raise DaemonAPIError(_error_message(e.response), e.response.status_code) from e

        except httpx.HTTPError as e:
            raise DaemonAPIError(str(e)) from e

    raise DaemonNotRunningError(effective_port) from last_error
