"""Single-instance supervisor for the backend process.

The supervisor spawns the backend, captures its output into a LogStore,
observes its exit, stops it (SIGTERM then SIGKILL) and runs one-shot login
jobs through the same binary.

Concurrency:
    start() and stop() serialize on one asyncio.Lock held for the whole
    call, so concurrent start() calls spawn exactly one process.
    health_check() and run_job() never take the lock.

Usage:
    supervisor = BackendSupervisor(binary_path, config_path, backend_port=8318)
    await supervisor.start()
    ...
    await supervisor.stop()
"""

from __future__ import annotations

__all__ = ["BackendSupervisor"]

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Coroutine

from thinkgate import constants as _constants
from thinkgate.constants import (
    APP_NAME,
    BACKEND_HOST,
    DEFAULT_BACKEND_PORT,
    DEFAULT_LOG_BUFFER_CAPACITY,
)
from thinkgate.exceptions import BackendStartError, BinaryNotFoundError, ConfigNotFoundError
from thinkgate.log_config import log_event
from thinkgate.models import JobResult, SystemEvent

from . import jobs as _jobs
from .jobs import JobKind, build_job_input
from .log_store import LogStore
from .orphans import kill_orphaned_processes
from .state import ProcessState, check_transition

_logger = logging.getLogger(f"{APP_NAME}.supervisor")


@dataclass
class _BackendRun:
    """One spawned backend process and the tasks attached to it.

    Attributes:
        process: asyncio subprocess handle.
        cancel: Set once the process is gone; output readers stop on it.
        tasks: Reader and waiter tasks of this run.
    """

    process: asyncio.subprocess.Process
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    @property
    def pid(self) -> int:
        return self.process.pid


class BackendSupervisor:
    """Keeps at most one backend process alive.

    Args:
        binary_path: Backend executable.
        config_path: Backend config file, passed as --config.
        backend_port: Port the backend listens on (health probe target).
        log_store: Destination for backend output. Created if None.
        log_capacity: Capacity of the LogStore created when none is given.
        kill_orphans: Kill stray backend processes before each start.
    """

    def __init__(
        self,
        binary_path: Path | str,
        config_path: Path | str,
        *,
        backend_port: int = DEFAULT_BACKEND_PORT,
        log_store: LogStore | None = None,
        log_capacity: int = DEFAULT_LOG_BUFFER_CAPACITY,
        kill_orphans: bool = True,
    ) -> None:
        self._binary_path = Path(binary_path)
        self._config_path = Path(config_path)
        self._backend_port = backend_port
        self._log_store = log_store if log_store is not None else LogStore(log_capacity)
        self._kill_orphans = kill_orphans

        self._lock = asyncio.Lock()
        self._state = ProcessState.IDLE
        self._run: _BackendRun | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> ProcessState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """True while a started backend has not exited or been stopped."""
        return self._state is ProcessState.RUNNING and self._run is not None

    @property
    def pid(self) -> int | None:
        """PID of the running backend, None otherwise."""
        return self._run.pid if self.is_running and self._run is not None else None

    @property
    def backend_port(self) -> int:
        return self._backend_port

    @property
    def log_store(self) -> LogStore:
        return self._log_store

    def get_logs(self) -> list[str]:
        """Return buffered backend output, oldest first."""
        return self._log_store.lines()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the backend unless it is already running.

        Raises:
            BinaryNotFoundError: Executable missing.
            ConfigNotFoundError: Config file missing.
            BackendStartError: Spawn failed or the process exited during the
                settle interval.
        """
        async with self._lock:
            if self.is_running:
                return

            if self._kill_orphans:
                await kill_orphaned_processes(self._binary_path.name, self._log_store)

            self._transition(ProcessState.STARTING)
            try:
                run = await self._spawn()
            except BaseException:
                self._transition(ProcessState.STOPPED)
                raise

            self._run = run
            self._transition(ProcessState.RUNNING)
            self._log_store.add(f"✓ Server started on port {self._backend_port}")
            log_event(
                logging.INFO,
                SystemEvent(
                    event="backend_started",
                    message=f"Backend started on port {self._backend_port}",
                    pid=run.pid,
                    port=self._backend_port,
                ),
            )

            assert run.process.stdout is not None and run.process.stderr is not None
            self._track(run, self._read_output(run, run.process.stdout, ""))
            self._track(run, self._read_output(run, run.process.stderr, "⚠ "))
            self._track(run, self._watch_exit(run))

            await asyncio.sleep(_constants.START_SETTLE_SECONDS)

            if run.process.returncode is not None:
                run.cancel.set()
                if self._run is run:
                    self._run = None
                    self._transition(ProcessState.STOPPED)
                log_event(
                    logging.ERROR,
                    SystemEvent(
                        event="backend_exited_during_start",
                        message="Backend exited immediately after start",
                        pid=run.pid,
                        details={"returncode": run.process.returncode},
                    ),
                )
                raise BackendStartError(
                    f"Server exited immediately with code {run.process.returncode}"
                )

    async def stop(self) -> None:
        """Stop the backend if it is running.

        Sends SIGTERM, waits STOP_TIMEOUT_SECONDS, then SIGKILL. State is
        cleared on return even if signalling fails.
        """
        async with self._lock:
            run = self._run
            if run is None or self._state is not ProcessState.RUNNING:
                return

            self._transition(ProcessState.STOPPING)
            self._log_store.add(f"Stopping server (PID: {run.pid})...")

            try:
                with contextlib.suppress(ProcessLookupError):
                    run.process.terminate()
                try:
                    await asyncio.wait_for(run.process.wait(), timeout=_constants.STOP_TIMEOUT_SECONDS)
                    self._log_store.add("✓ Server stopped gracefully")
                except asyncio.TimeoutError:
                    self._log_store.add("⚠ Server didn't stop gracefully, force killing...")
                    with contextlib.suppress(ProcessLookupError):
                        run.process.kill()
                    await run.process.wait()
            except OSError as e:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="backend_stop_failed",
                        message=f"Failed to signal backend: {e}",
                        pid=run.pid,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    ),
                )
            finally:
                run.cancel.set()
                self._run = None
                self._transition(ProcessState.STOPPED)

            log_event(
                logging.INFO,
                SystemEvent(
                    event="backend_stopped",
                    message="Backend stopped",
                    pid=run.pid,
                    details={"returncode": run.process.returncode},
                ),
            )

    async def health_check(self) -> bool:
        """Probe the backend port with a bounded TCP connect.

        Returns:
            True if the connection was accepted.
        """
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(BACKEND_HOST, self._backend_port),
                timeout=_constants.HEALTH_CHECK_TIMEOUT_SECONDS,
            )
        except (OSError, asyncio.TimeoutError):
            return False

        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return True

    # =========================================================================
    # Login Jobs
    # =========================================================================

    async def run_job(self, kind: JobKind, parameter: str | None = None) -> JobResult:
        """Run a login job through the backend binary.

        The job is considered started when it is still running after the
        settle window, exits with status 0, or prints a browser hand-off
        marker. The process is reaped in the background either way.

        Args:
            kind: Login flow to start.
            parameter: Caller-supplied value (e-mail for qwen).

        Returns:
            JobResult describing the outcome.

        Raises:
            BinaryNotFoundError: Executable missing.
            JobParameterError: kind requires a parameter and none was given.
        """
        if not self._binary_path.exists():
            raise BinaryNotFoundError(self._binary_path)

        job_input = build_job_input(kind, parameter)
        spec = kind.spec

        try:
            proc = await asyncio.create_subprocess_exec(
                str(self._binary_path),
                "--config",
                str(self._config_path),
                spec.flag,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            log_event(
                logging.ERROR,
                SystemEvent(
                    event="job_spawn_failed",
                    message=f"Failed to start {spec.label} login: {e}",
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
            return JobResult(
                success=False,
                message=f"Failed to start authentication: {e}",
                error=str(e),
            )

        self._log_store.add(
            f"✓ Authentication process started (PID: {proc.pid}) - browser should open shortly"
        )

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        assert proc.stdout is not None and proc.stderr is not None
        collectors = {
            self._spawn_background(_collect(proc.stdout, stdout_buf)),
            self._spawn_background(_collect(proc.stderr, stderr_buf)),
        }
        if job_input is not None and spec.input_delay_seconds is not None:
            self._spawn_background(self._feed_job_input(proc, job_input, spec.input_delay_seconds))
        reaper = self._spawn_background(self._reap_job(proc, kind))

        await asyncio.sleep(_jobs.JOB_SETTLE_SECONDS)
        done, _ = await asyncio.wait({reaper}, timeout=_jobs.JOB_EXIT_WAIT_SECONDS)
        if not done:
            return JobResult(success=True, message=_jobs.JOB_STARTED_MESSAGE)

        await asyncio.wait(collectors, timeout=_jobs.JOB_EXIT_WAIT_SECONDS)
        returncode = reaper.result()
        stdout_text = stdout_buf.decode("utf-8", errors="replace")
        stderr_text = stderr_buf.decode("utf-8", errors="replace")
        output = stdout_text + stderr_text

        if returncode == 0 or any(marker in output for marker in _jobs.BROWSER_OPENED_MARKERS):
            return JobResult(success=True, message=_jobs.JOB_STARTED_MESSAGE)

        message = stderr_text.strip() or stdout_text.strip() or _jobs.JOB_FAILED_FALLBACK_MESSAGE
        return JobResult(
            success=False,
            message=message,
            error=f"Authentication process exited with code {returncode}",
        )

    async def _feed_job_input(self, proc: asyncio.subprocess.Process, data: bytes, delay: float) -> None:
        """Write a line to a job's stdin after a delay.

        The pipe stays open so later prompts wait for input instead of
        reading EOF. It is closed once the job exits.
        """
        await asyncio.sleep(delay)
        if proc.returncode is not None or proc.stdin is None:
            return
        try:
            proc.stdin.write(data)
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="job_input_failed",
                    message=f"Failed to send input to login job: {e}",
                    pid=proc.pid,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )

    async def _reap_job(self, proc: asyncio.subprocess.Process, kind: JobKind) -> int:
        """Wait for a job to exit and log its status."""
        returncode = await proc.wait()
        if proc.stdin is not None:
            proc.stdin.close()
        self._log_store.add(f"{kind.spec.label} authentication process exited with code: {returncode}")
        return returncode

    # =========================================================================
    # Internals
    # =========================================================================

    def _transition(self, target: ProcessState) -> None:
        check_transition(self._state, target)
        _logger.debug(
            {
                "event": "backend_state_changed",
                "message": f"Backend state {self._state.value} -> {target.value}",
            }
        )
        self._state = target

    async def _spawn(self) -> _BackendRun:
        """Verify paths and spawn the backend process."""
        if not self._binary_path.exists():
            raise BinaryNotFoundError(self._binary_path)
        if not self._config_path.exists():
            raise ConfigNotFoundError(self._config_path)

        try:
            process = await asyncio.create_subprocess_exec(
                str(self._binary_path),
                "--config",
                str(self._config_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            log_event(
                logging.ERROR,
                SystemEvent(
                    event="backend_spawn_failed",
                    message=f"Failed to start backend: {e}",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"binary_path": str(self._binary_path)},
                ),
            )
            raise BackendStartError(f"Failed to start server: {e}") from e

        return _BackendRun(process=process)

    async def _read_output(self, run: _BackendRun, stream: asyncio.StreamReader, prefix: str) -> None:
        """Append each non-empty output line to the log store.

        Stops at EOF or as soon as run.cancel is set, even while a read is
        pending (a grandchild may keep the pipe open after the backend exits).
        """
        cancelled = asyncio.create_task(run.cancel.wait())
        read: asyncio.Task[bytes] | None = None
        try:
            while True:
                read = asyncio.create_task(stream.readline())
                done, _ = await asyncio.wait({read, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                if read not in done:
                    return
                try:
                    raw = read.result()
                except ValueError:
                    # Line longer than the stream limit; the buffer was discarded
                    self._log_store.add(f"{prefix}(output line too long, truncated)")
                    continue
                if not raw:
                    return
                line = raw.decode("utf-8", errors="replace").strip()
                if line:
                    self._log_store.add(f"{prefix}{line}")
        finally:
            cancelled.cancel()
            if read is not None:
                read.cancel()

    async def _watch_exit(self, run: _BackendRun) -> None:
        """Observe backend exit and clear state if this is still the current run."""
        returncode = await run.process.wait()
        run.cancel.set()
        if self._run is run and self._state is ProcessState.RUNNING:
            self._run = None
            self._transition(ProcessState.STOPPED)
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="backend_exited",
                    message=f"Backend exited with code {returncode}",
                    pid=run.pid,
                    details={"returncode": returncode},
                ),
            )
        self._log_store.add(f"Server stopped with code: {returncode}")

    def _track(self, run: _BackendRun, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = self._spawn_background(coro)
        run.tasks.add(task)
        task.add_done_callback(run.tasks.discard)
        return task

    def _spawn_background(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(_log_task_failure)
        return task


async def _collect(stream: asyncio.StreamReader, buffer: bytearray) -> None:
    """Read a stream to EOF into buffer."""
    while True:
        chunk = await stream.read(_constants.STREAM_CHUNK_SIZE)
        if not chunk:
            return
        buffer.extend(chunk)


def _log_task_failure(task: asyncio.Task[Any]) -> None:
    """Log an exception raised by a background task."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.warning(
            {
                "event": "supervisor_task_failed",
                "message": f"Supervisor background task failed: {exc}",
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            }
        )
