"""FastAPI application for the status API.

Currently implements:
- Status (/api/status) - backend and proxy state
- Logs (/api/logs) - buffered backend output and live stream
- Server control (/api/server) - backend start/stop
- Auth (/api/auth) - browser login jobs

The API binds to 127.0.0.1 only and has no authentication.

Usage:
    app = create_api_app(supervisor=supervisor, proxy=proxy)
"""

from __future__ import annotations

__all__ = ["create_api_app"]

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from thinkgate import __version__
from thinkgate.exceptions import ThinkgateError
from thinkgate.proxy.server import ThinkingProxy
from thinkgate.supervisor.manager import BackendSupervisor

from .errors import (
    APIError,
    api_error_handler,
    http_exception_handler,
    thinkgate_error_handler,
    validation_error_handler,
)
from .routes import auth, logs, server, status


def create_api_app(
    supervisor: BackendSupervisor | None = None,
    proxy: ThinkingProxy | None = None,
) -> FastAPI:
    """Create the FastAPI application with all routes.

    Args:
        supervisor: Backend supervisor served by the API. Routes answer 503
            while it is None.
        proxy: Transforming proxy reported by the status route.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="thinkgate API",
        description="Status and control API for the thinkgate proxy",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.supervisor = supervisor
    app.state.proxy = proxy

    # Register exception handlers for structured error responses
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(ThinkgateError, thinkgate_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Mount API routes
    app.include_router(status.router, prefix="/api/status", tags=["status"])
    app.include_router(logs.router, prefix="/api/logs", tags=["logs"])
    app.include_router(server.router, prefix="/api/server", tags=["server"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

    return app
