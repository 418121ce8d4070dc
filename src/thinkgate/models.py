"""Pydantic models for thinkgate.

This module contains two categories of models:

API Response Models (FrozenModel-based):
- FrozenModel: Base class for immutable models
- JobResult: Outcome of an auxiliary login job
- ServerStatus / ProxyStatus / StatusResponse: Status API payloads
- LogsResponse: Buffered backend output
- ActionResponse: Result of start/stop actions

Request Models:
- ConnectRequest: Body of the auth connect endpoint

Logging Models:
- SystemEvent: Structured operational log entries
"""

from __future__ import annotations

__all__ = [
    # API Response Models
    "ActionResponse",
    "FrozenModel",
    "JobResult",
    "LogsResponse",
    "ProxyStatus",
    "ServerStatus",
    "StatusResponse",
    # Request Models
    "ConnectRequest",
    # Logging Models
    "SystemEvent",
]

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# API Response Models
# =============================================================================


class FrozenModel(BaseModel):
    """Base class for immutable Pydantic models."""

    model_config = ConfigDict(frozen=True)


class JobResult(FrozenModel):
    """Outcome of an auxiliary login job.

    Attributes:
        success: Whether the job is considered started successfully.
        message: User-facing message (browser hint or captured output).
        error: Exit error text when the job failed, else None.
    """

    success: bool
    message: str
    error: str | None = None


class ServerStatus(FrozenModel):
    """Backend process status.

    Attributes:
        running: Supervisor believes the process is alive.
        healthy: Backend port accepted a TCP connection.
        pid: Process ID while running.
        state: Lifecycle state name (idle, starting, running, stopping, stopped).
    """

    running: bool
    healthy: bool
    pid: int | None = None
    state: str


class ProxyStatus(FrozenModel):
    """Transforming proxy status."""

    running: bool
    port: int | None = None


class StatusResponse(FrozenModel):
    """Response model for the status endpoint."""

    server: ServerStatus
    proxy: ProxyStatus


class LogsResponse(FrozenModel):
    """Buffered backend output, oldest first."""

    lines: list[str]
    count: int


class ActionResponse(FrozenModel):
    """Response model for server start/stop actions."""

    success: bool
    message: str | None = None


# =============================================================================
# Request Models
# =============================================================================


class ConnectRequest(BaseModel):
    """Body of POST /api/auth/connect.

    Attributes:
        service: Job kind name (claude, codex, gemini, qwen).
        email: Account e-mail, required by jobs that prompt for one.
    """

    service: str = Field(min_length=1)
    email: str | None = None


# =============================================================================
# Logging Models
# =============================================================================


class SystemEvent(BaseModel):
    """One system log entry (<log_dir>/thinkgate/system.jsonl).

    Used for INFO, WARNING, ERROR, and CRITICAL events related to the
    proxy, the supervisor and the status API.

    Note: 'time' is None when created, populated by ISO8601Formatter during logging.
    """

    # --- core ---
    time: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp (UTC), added by formatter during serialization",
    )
    event: Optional[str] = Field(
        None,
        description="Machine-friendly event name, e.g. 'backend_started', 'proxy_listening'",
    )
    message: str = Field(description="Human-readable log message")

    # --- process / socket context ---
    pid: Optional[int] = Field(
        None,
        description="Backend or job process ID",
    )
    port: Optional[int] = Field(
        None,
        description="Port involved (listening or dialled)",
    )

    # --- error details ---
    error_type: Optional[str] = Field(
        None,
        description="Exception class name, e.g. 'ConnectionRefusedError'",
    )
    error_message: Optional[str] = Field(
        None,
        description="Short error text from exception",
    )

    # --- additional structured details ---
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional context as key-value pairs",
    )

    model_config = ConfigDict(extra="allow")
