"""Structured API error handling.

This module provides:
- ErrorCode enum with domain-grouped error codes
- APIError exception class for structured error responses
- Global exception handlers for consistent error formatting

Usage:
    from thinkgate.api.errors import APIError, ErrorCode

    raise APIError(
        status_code=400,
        code=ErrorCode.VALIDATION_ERROR,
        message="Unknown service: foo",
        details={"service": "foo"},
    )

Response format:
    {
        "detail": {
            "code": "VALIDATION_ERROR",
            "message": "Unknown service: foo",
            "details": {"service": "foo"}
        }
    }
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ErrorCode",
    "api_error_handler",
    "http_exception_handler",
    "thinkgate_error_handler",
    "validation_error_handler",
]

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from thinkgate.exceptions import BackendStartError, ConfigurationError, JobParameterError, ThinkgateError


class ErrorCode(str, Enum):
    """API error codes for programmatic handling.

    Codes are namespaced by domain:
    - CONFIG_*: Binary, config file or settings problems
    - BACKEND_*: Backend process errors
    - VALIDATION_*: Input validation errors
    - INTERNAL_*: Internal server errors
    """

    # Config errors (500)
    CONFIG_ERROR = "CONFIG_ERROR"

    # Backend errors (500)
    BACKEND_START_FAILED = "BACKEND_START_FAILED"

    # Resource errors (404)
    NOT_FOUND = "NOT_FOUND"

    # Validation errors (400, 422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Internal errors (500, 502, 503)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class APIError(HTTPException):
    """Structured API error with error code.

    Attributes:
        status_code: HTTP status code.
        code: Error code from ErrorCode enum.
        error_message: Human-readable error message.
        error_details: Optional contextual details.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.error_message = message
        self.error_details = details

        detail: dict[str, Any] = {
            "code": code.value,
            "message": message,
        }
        if details:
            detail["details"] = details

        super().__init__(status_code=status_code, detail=detail)


def api_error_from_exception(exc: ThinkgateError) -> APIError:
    """Map a domain exception to its API error.

    Args:
        exc: Domain exception.

    Returns:
        APIError with status and code for the exception type.
    """
    details: dict[str, Any] = {"failure_type": exc.failure_type}
    path = getattr(exc, "path", None)
    if path is not None:
        details["path"] = path

    if isinstance(exc, JobParameterError):
        return APIError(400, ErrorCode.VALIDATION_ERROR, str(exc), details)
    if isinstance(exc, ConfigurationError):
        return APIError(500, ErrorCode.CONFIG_ERROR, str(exc), details)
    if isinstance(exc, BackendStartError):
        return APIError(500, ErrorCode.BACKEND_START_FAILED, str(exc), details)
    return APIError(500, ErrorCode.INTERNAL_ERROR, str(exc), details)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def thinkgate_error_handler(request: Request, exc: ThinkgateError) -> JSONResponse:
    """Handle domain exceptions that escaped a route."""
    api_error = api_error_from_exception(exc)
    return JSONResponse(
        status_code=api_error.status_code,
        content={"detail": api_error.detail},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with structured response.

    Args:
        request: FastAPI request object.
        exc: RequestValidationError from Pydantic.

    Returns:
        JSONResponse (422) with structured error detail including validation_errors.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    loc = first_error.get("loc", [])
    msg = first_error.get("msg", "Validation error")

    if len(errors) == 1:
        # Filter out 'body' from location path
        field_parts = [str(part) for part in loc if part != "body"]
        field_name = ".".join(field_parts)
        message = f"{field_name}: {msg}" if field_name else msg
    else:
        message = f"{len(errors)} validation errors"

    detail: dict[str, Any] = {
        "code": ErrorCode.VALIDATION_ERROR.value,
        "message": message,
        "validation_errors": [
            {
                "loc": list(e.get("loc", [])),
                "msg": e.get("msg", ""),
                "type": e.get("type", ""),
            }
            for e in errors
        ],
    }

    return JSONResponse(
        status_code=422,
        content={"detail": detail},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap plain HTTPException details in the structured format."""
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    code = _status_to_error_code(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": code.value, "message": message}},
    )


def _status_to_error_code(status_code: int) -> ErrorCode:
    mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        404: ErrorCode.NOT_FOUND,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.UPSTREAM_ERROR,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }
    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)
