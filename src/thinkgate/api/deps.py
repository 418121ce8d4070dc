"""Shared dependencies for API routes.

Usage with Annotated:
    from thinkgate.api.deps import SupervisorDep

    @router.get("/status")
    async def get_status(supervisor: SupervisorDep) -> StatusResponse:
        ...
"""

from __future__ import annotations

__all__ = [
    # Dependency functions
    "get_proxy",
    "get_supervisor",
    # Type aliases for Annotated pattern
    "ProxyDep",
    "SupervisorDep",
]

from typing import Annotated, Any, Callable

from fastapi import Depends, HTTPException, Request

from thinkgate.proxy.server import ThinkingProxy
from thinkgate.supervisor.manager import BackendSupervisor


def _create_state_getter(
    attr_name: str,
    type_hint: str,
    error_detail: str,
) -> Callable[[Request], Any]:
    """Create a dependency function that retrieves a value from app.state.

    Args:
        attr_name: Attribute name on app.state (e.g., "supervisor").
        type_hint: Type name used in the getter's docstring.
        error_detail: Error message for the 503 response.

    Returns:
        A dependency function compatible with FastAPI's Depends().
    """

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise HTTPException(status_code=503, detail=error_detail)
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {type_hint} from app.state.\n\nRaises HTTPException 503 if not available."
    return getter


get_supervisor: Callable[[Request], BackendSupervisor] = _create_state_getter(
    "supervisor",
    "BackendSupervisor",
    "Supervisor not available. Daemon may still be starting.",
)

get_proxy: Callable[[Request], ThinkingProxy] = _create_state_getter(
    "proxy",
    "ThinkingProxy",
    "Proxy not available. Daemon may still be starting.",
)


SupervisorDep = Annotated[BackendSupervisor, Depends(get_supervisor)]
ProxyDep = Annotated[ThinkingProxy, Depends(get_proxy)]
