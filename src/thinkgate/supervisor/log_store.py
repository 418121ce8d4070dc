"""In-memory store for backend output with live subscribers.

The supervisor writes every backend output line (and its own lifecycle
messages) here. Consumers either take a snapshot with lines() or
subscribe() to receive each new line on an asyncio.Queue, which is how the
status API streams logs.
"""

from __future__ import annotations

__all__ = ["LogStore"]

import asyncio
import logging
from datetime import datetime

from thinkgate.constants import APP_NAME, DEFAULT_LOG_BUFFER_CAPACITY, LOG_SUBSCRIBER_QUEUE_SIZE

from .ring_buffer import RingBuffer

_logger = logging.getLogger(f"{APP_NAME}.supervisor.logs")


class LogStore:
    """Timestamped, bounded log of backend activity.

    Subscribers are fed with put_nowait() from the event loop thread; a
    subscriber whose queue is full misses lines rather than stalling the
    writer.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_LOG_BUFFER_CAPACITY,
        subscriber_queue_size: int = LOG_SUBSCRIBER_QUEUE_SIZE,
    ) -> None:
        self._buffer = RingBuffer(capacity)
        self._subscriber_queue_size = subscriber_queue_size
        self._subscribers: list[asyncio.Queue[str]] = []

    @property
    def capacity(self) -> int:
        """Maximum number of lines retained."""
        return self._buffer.capacity

    @property
    def subscriber_count(self) -> int:
        """Return the current number of live subscribers."""
        return len(self._subscribers)

    def add(self, message: str) -> str:
        """Timestamp a message, store it and publish it to subscribers.

        Args:
            message: Text without timestamp.

        Returns:
            The stored line, "[HH:MM:SS] message".
        """
        line = f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        self._buffer.append(line)

        for queue in list(self._subscribers):
            try:
                queue.put_nowait(line)
            except asyncio.QueueFull:
                _logger.warning(
                    {
                        "event": "log_subscriber_queue_full",
                        "message": "Log subscriber queue full, dropping line",
                        "details": {"subscriber_count": len(self._subscribers)},
                    }
                )
        return line

    def lines(self) -> list[str]:
        """Return stored lines, oldest first."""
        return self._buffer.elements()

    def subscribe(self) -> asyncio.Queue[str]:
        """Subscribe to new lines.

        Returns:
            Queue that receives every line added after this call.
        """
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._subscriber_queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        """Stop delivering lines to a queue returned by subscribe()."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)
