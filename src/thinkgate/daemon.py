"""Daemon orchestrator (run_daemon entry point).

Startup order:
1. Transforming proxy binds its port (clients are accepted, not refused,
   while the backend comes up)
2. Backend is spawned and polled until its port accepts connections
3. Status API starts

Shutdown reverses the order: status API, proxy, backend.
"""

from __future__ import annotations

__all__ = [
    "run_daemon",
    "wait_for_backend_ready",
]

import asyncio
import errno
import logging
import os
import signal
import socket

import uvicorn

from thinkgate import constants as _constants
from thinkgate.api import create_api_app
from thinkgate.config import AppConfig, resolve_backend_config_path, resolve_binary_path
from thinkgate.constants import API_SERVER_SHUTDOWN_TIMEOUT_SECONDS, BACKEND_HOST
from thinkgate.exceptions import BackendStartError
from thinkgate.log_config import log_event
from thinkgate.models import SystemEvent
from thinkgate.proxy import ThinkingProxy
from thinkgate.supervisor import BackendSupervisor, LogStore

# HTTP server backlog (number of pending connections)
HTTP_LISTEN_BACKLOG = 100

# Signals that trigger an orderly shutdown
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


async def wait_for_backend_ready(
    supervisor: BackendSupervisor,
    attempts: int | None = None,
    interval: float | None = None,
) -> bool:
    """Poll the backend health probe until it succeeds.

    Args:
        supervisor: Supervisor whose backend port is probed.
        attempts: Number of probes. Defaults to BACKEND_READY_ATTEMPTS.
        interval: Seconds between probes. Defaults to BACKEND_READY_POLL_SECONDS.

    Returns:
        True as soon as a probe succeeds, False after all attempts failed.
    """
    attempts = attempts if attempts is not None else _constants.BACKEND_READY_ATTEMPTS
    interval = interval if interval is not None else _constants.BACKEND_READY_POLL_SECONDS

    for attempt in range(attempts):
        if await supervisor.health_check():
            return True
        if attempt < attempts - 1:
            await asyncio.sleep(interval)
    return False


def _bind_api_socket(port: int) -> socket.socket:
    """Bind the status API socket on loopback.

    Raises:
        RuntimeError: If the port is already in use.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((BACKEND_HOST, port))
    except OSError as e:
        sock.close()
        if e.errno == errno.EADDRINUSE:
            raise RuntimeError(
                f"Port {port} is already in use.\n"
                f"Another process is using this port. "
                f"Use --api-port to specify a different port."
            ) from e
        raise
    sock.listen(HTTP_LISTEN_BACKLOG)
    sock.setblocking(False)
    return sock


async def run_daemon(
    config: AppConfig,
    *,
    proxy_port: int | None = None,
    backend_port: int | None = None,
    api_port: int | None = None,
    serve_api: bool = True,
) -> None:
    """Run proxy, backend and status API until SIGINT/SIGTERM.

    Args:
        config: Settings.
        proxy_port: Overrides config.proxy_port.
        backend_port: Overrides config.backend_port.
        api_port: Overrides config.api_port.
        serve_api: Start the status API.

    Raises:
        ConfigurationError: Binary or backend config cannot be resolved.
        BackendStartError: Backend failed to start or never became ready.
        RuntimeError: A port is already in use.
    """
    effective_proxy_port = proxy_port if proxy_port is not None else config.proxy_port
    effective_backend_port = backend_port if backend_port is not None else config.backend_port
    effective_api_port = api_port if api_port is not None else config.api_port

    binary_path = resolve_binary_path(config)
    backend_config_path = resolve_backend_config_path(config, binary_path, effective_backend_port)

    # Suppress uvicorn's logging (we use our own)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    log_event(
        logging.INFO,
        SystemEvent(
            event="daemon_starting",
            message=f"thinkgate starting: proxy={effective_proxy_port}, backend={effective_backend_port}, pid={os.getpid()}",
            pid=os.getpid(),
            details={
                "binary_path": str(binary_path),
                "backend_config_path": str(backend_config_path),
                "api_port": effective_api_port if serve_api else None,
            },
        ),
    )

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_shutdown_signal(signum: int) -> None:
        """Handle shutdown signals (SIGTERM, SIGINT) on the event loop."""
        log_event(
            logging.INFO,
            SystemEvent(
                event="shutdown_signal_received",
                message=f"Received signal {signum}, initiating shutdown",
                details={"signal": signum},
            ),
        )
        shutdown_event.set()

    supervisor = BackendSupervisor(
        binary_path,
        backend_config_path,
        backend_port=effective_backend_port,
        log_store=LogStore(config.log_buffer_capacity),
        kill_orphans=config.kill_orphans,
    )
    proxy = ThinkingProxy(effective_proxy_port, BACKEND_HOST, effective_backend_port)

    try:
        await proxy.start()
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            raise RuntimeError(
                f"Port {effective_proxy_port} is already in use.\n"
                f"Another process is using this port. "
                f"Use --proxy-port to specify a different port."
            ) from e
        raise

    for signum in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(signum, handle_shutdown_signal, signum)
        except NotImplementedError:
            # No loop signal support (Windows); hand the signal over to the loop thread
            signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(handle_shutdown_signal, s))

    http_socket: socket.socket | None = None
    http_server: uvicorn.Server | None = None
    server_task: asyncio.Task[None] | None = None

    try:
        await asyncio.sleep(_constants.PROXY_BIND_SETTLE_SECONDS)

        await supervisor.start()

        if not await wait_for_backend_ready(supervisor):
            attempts = _constants.BACKEND_READY_ATTEMPTS
            seconds = attempts * _constants.BACKEND_READY_POLL_SECONDS
            raise BackendStartError(
                f"Backend failed to start (port {effective_backend_port} not listening after {seconds:g} seconds)"
            )

        log_event(
            logging.INFO,
            SystemEvent(
                event="backend_ready",
                message="Backend is ready and accepting connections",
                port=effective_backend_port,
                pid=supervisor.pid,
            ),
        )

        if serve_api:
            http_socket = _bind_api_socket(effective_api_port)
            http_config = uvicorn.Config(
                create_api_app(supervisor=supervisor, proxy=proxy),
                fd=http_socket.fileno(),
                log_config=None,
                ws="none",  # We use SSE, not WebSockets
            )
            http_server = uvicorn.Server(http_config)
            server_task = asyncio.create_task(http_server._serve())

        log_event(
            logging.INFO,
            SystemEvent(
                event="daemon_started",
                message=f"All services started. Client port: {effective_proxy_port} (with thinking transformation)",
                port=effective_proxy_port,
            ),
        )

        await shutdown_event.wait()
    finally:
        log_event(
            logging.INFO,
            SystemEvent(event="daemon_shutting_down", message="thinkgate shutting down"),
        )

        if http_server is not None and server_task is not None:
            http_server.should_exit = True
            try:
                await asyncio.wait_for(server_task, timeout=API_SERVER_SHUTDOWN_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="shutdown_timeout",
                        message="API server shutdown timed out, cancelling",
                    ),
                )
                server_task.cancel()
            except asyncio.CancelledError:
                pass

        if http_socket is not None:
            try:
                http_socket.close()
            except OSError:
                pass  # Non-critical cleanup

        await proxy.stop()
        await supervisor.stop()

        log_event(
            logging.INFO,
            SystemEvent(event="daemon_stopped", message="thinkgate shutdown complete"),
        )

        for signum in SHUTDOWN_SIGNALS:
            try:
                loop.remove_signal_handler(signum)
            except NotImplementedError:
                signal.signal(signum, signal.SIG_DFL)
