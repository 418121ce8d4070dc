"""Client-facing TCP proxy that rewrites thinking suffixes.

Each accepted connection carries exactly one request: it is parsed, its
body transformed (POST with a non-empty body only), sent to the backend over
a fresh connection with Connection: close, and the backend's bytes are
copied back verbatim until the backend closes.

Failures never drop the client silently:
- unparseable request: 400 Bad Request
- backend unreachable: 502 Bad Gateway

There is no per-request timeout; a stalled backend holds its handler open.
"""

from __future__ import annotations

__all__ = ["ThinkingProxy"]

import asyncio
import contextlib
import logging
from http import HTTPStatus

from thinkgate.constants import (
    APP_NAME,
    BACKEND_HOST,
    DEFAULT_BACKEND_PORT,
    DEFAULT_PROXY_PORT,
    MAX_HEADER_LINE_BYTES,
    STREAM_CHUNK_SIZE,
)
from thinkgate.exceptions import ProtocolParseError, UpstreamUnavailableError
from thinkgate.log_config import log_event
from thinkgate.models import SystemEvent

from .http import build_forward_request, error_response, read_request
from .thinking import apply_thinking_transform

_logger = logging.getLogger(f"{APP_NAME}.proxy")


class ThinkingProxy:
    """Transforming reverse proxy in front of the backend.

    Args:
        listen_port: Port to accept clients on (0 picks a free port).
        target_host: Backend host.
        target_port: Backend port.
        listen_host: Interface to bind.
    """

    def __init__(
        self,
        listen_port: int = DEFAULT_PROXY_PORT,
        target_host: str = BACKEND_HOST,
        target_port: int = DEFAULT_BACKEND_PORT,
        *,
        listen_host: str = "127.0.0.1",
    ) -> None:
        self._listen_host = listen_host
        self._listen_port = listen_port
        self._target_host = target_host
        self._target_port = target_port

        self._lock = asyncio.Lock()
        self._server: asyncio.AbstractServer | None = None

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int | None:
        """Bound port while running, else None."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    @property
    def target(self) -> tuple[str, int]:
        return self._target_host, self._target_port

    async def start(self) -> None:
        """Bind the listening socket and start accepting.

        Raises:
            OSError: If the port cannot be bound.
        """
        async with self._lock:
            if self._server is not None:
                return
            self._server = await asyncio.start_server(
                self._handle_connection,
                host=self._listen_host,
                port=self._listen_port,
                limit=MAX_HEADER_LINE_BYTES,
            )
            log_event(
                logging.INFO,
                SystemEvent(
                    event="proxy_listening",
                    message=f"Thinking proxy listening on port {self.port}",
                    port=self.port,
                    details={"target": f"{self._target_host}:{self._target_port}"},
                ),
            )

    async def stop(self) -> None:
        """Close the listening socket.

        Handlers already in flight run to completion.
        """
        async with self._lock:
            if self._server is None:
                return
            port = self.port
            self._server.close()
            self._server = None
            log_event(
                logging.INFO,
                SystemEvent(event="proxy_stopped", message="Thinking proxy stopped", port=port),
            )

    # =========================================================================
    # Connection Handling
    # =========================================================================

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Serve one request on a client connection."""
        try:
            try:
                request = await read_request(reader)
            except ProtocolParseError as e:
                _logger.debug(
                    {
                        "event": "proxy_bad_request",
                        "message": f"Rejected malformed request: {e}",
                    }
                )
                await _send(writer, error_response(HTTPStatus.BAD_REQUEST))
                return

            body = request.body
            if request.method == "POST" and body:
                body = apply_thinking_transform(body)

            payload = build_forward_request(request, body, self._target_host, self._target_port)

            try:
                upstream_reader, upstream_writer = await self._open_upstream()
            except UpstreamUnavailableError:
                await _send(writer, error_response(HTTPStatus.BAD_GATEWAY))
                return

            try:
                try:
                    upstream_writer.write(payload)
                    await upstream_writer.drain()
                except OSError as e:
                    _logger.warning(
                        {
                            "event": "proxy_upstream_send_failed",
                            "message": f"Failed to send request to backend: {e}",
                            "error_type": type(e).__name__,
                            "error_message": str(e),
                        }
                    )
                    await _send(writer, error_response(HTTPStatus.BAD_GATEWAY))
                    return

                await self._stream_response(upstream_reader, writer)
            finally:
                await _close(upstream_writer)
        except OSError as e:
            _logger.debug(
                {
                    "event": "proxy_connection_error",
                    "message": f"Client connection error: {e}",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )
        finally:
            await _close(writer)

    async def _open_upstream(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Dial the backend.

        Raises:
            UpstreamUnavailableError: If the connection fails.
        """
        try:
            return await asyncio.open_connection(self._target_host, self._target_port)
        except OSError as e:
            _logger.warning(
                {
                    "event": "proxy_upstream_unavailable",
                    "message": f"Failed to connect to backend: {e}",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "details": {"target": f"{self._target_host}:{self._target_port}"},
                }
            )
            raise UpstreamUnavailableError(f"cannot reach {self._target_host}:{self._target_port}") from e

    async def _stream_response(self, upstream: asyncio.StreamReader, client: asyncio.StreamWriter) -> None:
        """Copy backend bytes to the client until EOF or error."""
        while True:
            try:
                chunk = await upstream.read(STREAM_CHUNK_SIZE)
            except OSError as e:
                _logger.debug(
                    {
                        "event": "proxy_upstream_read_failed",
                        "message": f"Read error from backend: {e}",
                        "error_type": type(e).__name__,
                    }
                )
                return
            if not chunk:
                return
            client.write(chunk)
            await client.drain()


async def _send(writer: asyncio.StreamWriter, data: bytes) -> None:
    writer.write(data)
    await writer.drain()


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
