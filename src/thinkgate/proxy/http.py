"""Minimal HTTP/1.x request reading and writing for the proxy.

Only what one request/response cycle needs: parse a request from a
StreamReader (body framed by Content-Length or chunked encoding), rebuild it
for the backend, and format plain-text error responses. Responses from the
backend are never parsed.

The forwarded request is rebuilt from parsed fields, so header passthrough
keeps order and original casing of names but not exact whitespace or
line folding.
"""

from __future__ import annotations

__all__ = [
    "ParsedRequest",
    "build_forward_request",
    "error_response",
    "read_request",
]

import asyncio
import re
from dataclasses import dataclass, field
from http import HTTPStatus

from thinkgate.constants import EXCLUDED_FORWARD_HEADERS
from thinkgate.exceptions import ProtocolParseError

# RFC 9110 token
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_VERSION_RE = re.compile(r"HTTP/1\.[0-9]")
_CHUNK_SIZE_RE = re.compile(r"[0-9A-Fa-f]+")


@dataclass
class ParsedRequest:
    """One inbound HTTP request.

    Attributes:
        method: Request method, e.g. "POST".
        target: Request target as sent, e.g. "/v1/messages?beta=true".
        version: Protocol version, e.g. "HTTP/1.1".
        headers: Header (name, value) pairs in arrival order.
        body: De-framed body bytes (chunked encoding removed).
    """

    method: str
    target: str
    version: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def get_header(self, name: str) -> str | None:
        """First value of a header, case-insensitive."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def get_all(self, name: str) -> list[str]:
        """All values of a header, case-insensitive."""
        lowered = name.lower()
        return [value for key, value in self.headers if key.lower() == lowered]


async def _read_line(reader: asyncio.StreamReader) -> str:
    """Read one CRLF (or LF) terminated line, without the terminator."""
    try:
        raw = await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        raise ProtocolParseError("unexpected end of request") from e
    except asyncio.LimitOverrunError as e:
        raise ProtocolParseError("line too long") from e
    return raw.rstrip(b"\r\n").decode("latin-1")


async def _read_exactly(reader: asyncio.StreamReader, n: int) -> bytes:
    try:
        return await reader.readexactly(n)
    except asyncio.IncompleteReadError as e:
        raise ProtocolParseError(f"body truncated: expected {n} bytes, got {len(e.partial)}") from e


async def _read_chunked_body(reader: asyncio.StreamReader) -> bytes:
    """Decode a chunked body, discarding extensions and trailers."""
    body = bytearray()
    while True:
        size_line = (await _read_line(reader)).split(";", 1)[0].strip()
        if not _CHUNK_SIZE_RE.fullmatch(size_line):
            raise ProtocolParseError(f"invalid chunk size: {size_line!r}")
        size = int(size_line, 16)
        if size == 0:
            break
        body += await _read_exactly(reader, size)
        if await _read_line(reader):
            raise ProtocolParseError("missing CRLF after chunk data")

    # Trailer section ends with an empty line
    while await _read_line(reader):
        pass
    return bytes(body)


def _parse_content_length(values: list[str]) -> int:
    lengths = {value.strip() for value in values}
    if len(lengths) != 1:
        raise ProtocolParseError("conflicting Content-Length headers")
    length = lengths.pop()
    if not length.isdigit():
        raise ProtocolParseError(f"invalid Content-Length: {length!r}")
    return int(length)


async def read_request(reader: asyncio.StreamReader) -> ParsedRequest:
    """Read one HTTP/1.x request, including its body.

    Args:
        reader: Client stream.

    Returns:
        ParsedRequest with the de-framed body (empty if none).

    Raises:
        ProtocolParseError: If the bytes are not a well-formed request.
    """
    request_line = await _read_line(reader)
    parts = request_line.split(" ")
    if len(parts) != 3:
        raise ProtocolParseError(f"malformed request line: {request_line!r}")
    method, target, version = parts
    if not _TOKEN_RE.fullmatch(method):
        raise ProtocolParseError(f"invalid method: {method!r}")
    if not target:
        raise ProtocolParseError("empty request target")
    if not _VERSION_RE.fullmatch(version):
        raise ProtocolParseError(f"unsupported protocol version: {version!r}")

    request = ParsedRequest(method=method, target=target, version=version)

    while True:
        line = await _read_line(reader)
        if not line:
            break
        if line[0] in " \t":
            raise ProtocolParseError("obsolete header line folding")
        name, sep, value = line.partition(":")
        if not sep or not _TOKEN_RE.fullmatch(name):
            raise ProtocolParseError(f"malformed header line: {line!r}")
        request.headers.append((name, value.strip(" \t")))

    transfer_encodings = request.get_all("transfer-encoding")
    if transfer_encodings:
        codings = [c.strip().lower() for value in transfer_encodings for c in value.split(",") if c.strip()]
        if codings != ["chunked"]:
            raise ProtocolParseError(f"unsupported transfer encoding: {', '.join(transfer_encodings)}")
        request.body = await _read_chunked_body(reader)
        return request

    content_lengths = request.get_all("content-length")
    if content_lengths:
        request.body = await _read_exactly(reader, _parse_content_length(content_lengths))
    return request


def build_forward_request(request: ParsedRequest, body: bytes, target_host: str, target_port: int) -> bytes:
    """Serialize a request for the backend.

    Passthrough headers keep their order; Host, Content-Length and
    Transfer-Encoding are replaced, and Connection: close is always sent.

    Args:
        request: Parsed client request.
        body: Body to send (possibly rewritten).
        target_host: Backend host.
        target_port: Backend port.

    Returns:
        Complete request bytes.
    """
    lines = [f"{request.method} {request.target} {request.version}"]
    for name, value in request.headers:
        if name.lower() in EXCLUDED_FORWARD_HEADERS:
            continue
        lines.append(f"{name}: {value}")
    lines.append(f"Host: {target_host}:{target_port}")
    lines.append("Connection: close")
    lines.append(f"Content-Length: {len(body)}")
    head = "\r\n".join(lines) + "\r\n\r\n"
    return head.encode("latin-1") + body


def error_response(status: HTTPStatus, message: str | None = None) -> bytes:
    """Plain-text error response that closes the connection.

    Args:
        status: HTTP status to send.
        message: Body text. Defaults to the status phrase.

    Returns:
        Complete response bytes.
    """
    body = (message or status.phrase).encode("utf-8")
    head = (
        f"HTTP/1.1 {status.value} {status.phrase}\r\n"
        "Content-Type: text/plain\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("latin-1") + body
