"""Login job endpoint.

Provides:
- POST /api/auth/connect - Start a browser login flow through the backend

Routes mounted at: /api/auth
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from thinkgate.api.deps import SupervisorDep
from thinkgate.api.errors import APIError, ErrorCode, api_error_from_exception
from thinkgate.exceptions import ThinkgateError
from thinkgate.models import ConnectRequest, JobResult
from thinkgate.supervisor.jobs import JobKind

router = APIRouter()


@router.post("/connect")
async def connect(body: ConnectRequest, supervisor: SupervisorDep) -> JobResult:
    """Run the login job for a service.

    A successful result means the flow was handed off to the browser, not
    that the login completed.

    Raises:
        APIError: VALIDATION_ERROR for an unknown service or a missing
            e-mail, CONFIG_ERROR if the binary is missing.
    """
    try:
        kind = JobKind.from_name(body.service)
    except ValueError as e:
        raise APIError(
            status_code=400,
            code=ErrorCode.VALIDATION_ERROR,
            message=str(e),
            details={"service": body.service, "valid": [k.value for k in JobKind]},
        ) from e

    try:
        return await supervisor.run_job(kind, body.email)
    except ThinkgateError as e:
        raise api_error_from_exception(e) from e
