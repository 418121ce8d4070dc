"""Status endpoint.

Provides:
- GET /api/status - Backend process and proxy status

Routes mounted at: /api/status
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from thinkgate.api.deps import ProxyDep, SupervisorDep
from thinkgate.models import ProxyStatus, ServerStatus, StatusResponse

router = APIRouter()


@router.get("")
async def get_status(supervisor: SupervisorDep, proxy: ProxyDep) -> StatusResponse:
    """Get backend and proxy status.

    The health flag comes from a bounded TCP probe of the backend port and
    is advisory: it can disagree with running for a short while after a
    start or a crash.
    """
    return StatusResponse(
        server=ServerStatus(
            running=supervisor.is_running,
            healthy=await supervisor.health_check(),
            pid=supervisor.pid,
            state=supervisor.state.value,
        ),
        proxy=ProxyStatus(
            running=proxy.is_running,
            port=proxy.port,
        ),
    )
