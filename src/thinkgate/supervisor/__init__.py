"""Backend process supervision.

Exports:
    BackendSupervisor: Single-instance lifecycle owner of the backend.
    LogStore / RingBuffer: Bounded capture of backend output.
    ProcessState: Lifecycle states.
    JobKind: Login jobs runnable through the backend binary.
"""

from __future__ import annotations

__all__ = [
    "BackendSupervisor",
    "JobKind",
    "LogStore",
    "ProcessState",
    "RingBuffer",
]

from .jobs import JobKind
from .log_store import LogStore
from .manager import BackendSupervisor
from .ring_buffer import RingBuffer
from .state import ProcessState
