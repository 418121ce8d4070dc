"""Fixed-capacity ring buffer for backend output lines."""

from __future__ import annotations

__all__ = ["RingBuffer"]

import threading


class RingBuffer:
    """Thread-safe circular buffer keeping the most recent lines.

    Appending to a full buffer overwrites the oldest line. Readers get a
    snapshot taken under the same lock, so they see the buffer either
    before or after any append, never in between.

    Attributes:
        capacity: Maximum number of lines held (at least 1).
    """

    def __init__(self, capacity: int) -> None:
        """Initialize the buffer.

        Args:
            capacity: Maximum number of lines. Values below 1 are clamped to 1.
        """
        self.capacity = max(1, capacity)
        self._storage: list[str | None] = [None] * self.capacity
        self._head = 0  # oldest line
        self._tail = 0  # next write slot
        self._count = 0
        self._lock = threading.Lock()

    def append(self, line: str) -> None:
        """Append a line, evicting the oldest when full."""
        with self._lock:
            self._storage[self._tail] = line
            if self._count == self.capacity:
                self._head = (self._head + 1) % self.capacity
            else:
                self._count += 1
            self._tail = (self._tail + 1) % self.capacity

    def elements(self) -> list[str]:
        """Return a new list of the stored lines, oldest first."""
        with self._lock:
            return [
                self._storage[(self._head + i) % self.capacity]  # type: ignore[misc]
                for i in range(self._count)
            ]

    def __len__(self) -> int:
        with self._lock:
            return self._count
