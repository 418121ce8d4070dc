"""Backend control endpoints.

Provides:
- POST /api/server/start - Start the backend (no-op if running)
- POST /api/server/stop - Stop the backend (no-op if stopped)

Routes mounted at: /api/server
"""

from __future__ import annotations

__all__ = ["router"]

import logging

from fastapi import APIRouter

from thinkgate.api.deps import SupervisorDep
from thinkgate.api.errors import api_error_from_exception
from thinkgate.exceptions import ThinkgateError
from thinkgate.log_config import log_event
from thinkgate.models import ActionResponse, SystemEvent

router = APIRouter()


@router.post("/start")
async def start_server(supervisor: SupervisorDep) -> ActionResponse:
    """Start the backend process.

    Raises:
        APIError: CONFIG_ERROR if the binary or config is missing,
            BACKEND_START_FAILED if the process could not be started.
    """
    try:
        await supervisor.start()
    except ThinkgateError as e:
        log_event(
            logging.ERROR,
            SystemEvent(
                event="api_backend_start_failed",
                message=f"Backend start requested via API failed: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        raise api_error_from_exception(e) from e
    return ActionResponse(success=True, message=f"Server running (PID: {supervisor.pid})")


@router.post("/stop")
async def stop_server(supervisor: SupervisorDep) -> ActionResponse:
    """Stop the backend process."""
    await supervisor.stop()
    return ActionResponse(success=True, message="Server stopped")
