"""Backend process lifecycle states."""

from __future__ import annotations

__all__ = ["ALLOWED_TRANSITIONS", "InvalidTransitionError", "ProcessState", "check_transition"]

from enum import Enum


class ProcessState(str, Enum):
    """Lifecycle of the supervised backend.

    IDLE -> STARTING -> RUNNING -> STOPPING -> STOPPED -> STARTING ...

    A failed start goes STARTING -> STOPPED. A backend that exits on its
    own goes RUNNING -> STOPPED without passing through STOPPING.
    """

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


ALLOWED_TRANSITIONS: dict[ProcessState, frozenset[ProcessState]] = {
    ProcessState.IDLE: frozenset({ProcessState.STARTING}),
    ProcessState.STARTING: frozenset({ProcessState.RUNNING, ProcessState.STOPPED}),
    ProcessState.RUNNING: frozenset({ProcessState.STOPPING, ProcessState.STOPPED}),
    ProcessState.STOPPING: frozenset({ProcessState.STOPPED}),
    ProcessState.STOPPED: frozenset({ProcessState.STARTING}),
}


class InvalidTransitionError(RuntimeError):
    """Raised on a lifecycle transition the state machine does not allow."""


def check_transition(current: ProcessState, target: ProcessState) -> None:
    """Validate a lifecycle transition.

    Raises:
        InvalidTransitionError: If target is not reachable from current.
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot go from {current.value} to {target.value}")
