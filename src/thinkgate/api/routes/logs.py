"""Backend log endpoints.

Provides:
- GET /api/logs - Buffered backend output, oldest first
- GET /api/logs/stream - Server-sent events, one per new line

Routes mounted at: /api/logs
"""

from __future__ import annotations

__all__ = ["router", "stream_log_lines"]

import asyncio
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Query, Request
from sse_starlette.sse import EventSourceResponse

from thinkgate.api.deps import SupervisorDep
from thinkgate.constants import APP_NAME
from thinkgate.models import LogsResponse
from thinkgate.supervisor.log_store import LogStore

_logger = logging.getLogger(f"{APP_NAME}.api.logs")

# Interval between keepalive comments on an idle stream (seconds)
SSE_KEEPALIVE_SECONDS = 30.0

router = APIRouter()


@router.get("")
async def get_logs(
    supervisor: SupervisorDep,
    limit: int | None = Query(default=None, ge=1, description="Return only the newest N lines"),
) -> LogsResponse:
    """Get buffered backend output."""
    lines = supervisor.get_logs()
    if limit is not None:
        lines = lines[-limit:]
    return LogsResponse(lines=lines, count=len(lines))


async def stream_log_lines(
    request: Request,
    log_store: LogStore,
    keepalive_seconds: float = SSE_KEEPALIVE_SECONDS,
) -> AsyncIterator[dict[str, Any]]:
    """Yield SSE events for lines added to log_store until the client leaves.

    Args:
        request: Request used to detect client disconnect.
        log_store: Store to subscribe to.
        keepalive_seconds: Idle time before a keepalive comment is sent.
    """
    queue = log_store.subscribe()
    _logger.info(
        {
            "event": "log_subscriber_connected",
            "message": f"Log stream subscriber connected (total: {log_store.subscriber_count})",
        }
    )
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                line = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
                yield {"data": line}
            except asyncio.TimeoutError:
                yield {"comment": "keepalive"}
    finally:
        log_store.unsubscribe(queue)
        _logger.info(
            {
                "event": "log_subscriber_disconnected",
                "message": f"Log stream subscriber disconnected (total: {log_store.subscriber_count})",
            }
        )


@router.get("/stream")
async def stream_logs(request: Request, supervisor: SupervisorDep) -> EventSourceResponse:
    """Stream new backend output lines as server-sent events."""
    return EventSourceResponse(stream_log_lines(request, supervisor.log_store))
