"""Unit tests for RingBuffer."""

from __future__ import annotations

import threading

import pytest

from thinkgate.supervisor.ring_buffer import RingBuffer


class TestRingBuffer:
    """Tests for bounded append-only storage."""

    def test_empty_buffer_has_no_elements(self):
        buffer = RingBuffer(3)

        assert buffer.elements() == []
        assert len(buffer) == 0

    def test_keeps_arrival_order_below_capacity(self):
        buffer = RingBuffer(5)

        for line in ("a", "b", "c"):
            buffer.append(line)

        assert buffer.elements() == ["a", "b", "c"]
        assert len(buffer) == 3

    @pytest.mark.parametrize("extra", [1, 2, 7, 100])
    def test_overflow_keeps_last_capacity_lines(self, extra):
        """After capacity + k appends only the newest capacity lines remain."""
        capacity = 4
        buffer = RingBuffer(capacity)
        lines = [f"line {i}" for i in range(capacity + extra)]

        for line in lines:
            buffer.append(line)

        assert len(buffer) == capacity
        assert buffer.elements() == lines[-capacity:]

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_capacity_is_clamped_to_one(self, capacity):
        buffer = RingBuffer(capacity)

        buffer.append("first")
        buffer.append("second")

        assert buffer.capacity == 1
        assert buffer.elements() == ["second"]

    def test_elements_returns_a_copy(self):
        buffer = RingBuffer(2)
        buffer.append("a")

        snapshot = buffer.elements()
        snapshot.append("mutated")

        assert buffer.elements() == ["a"]

    def test_concurrent_appends_never_exceed_capacity(self):
        buffer = RingBuffer(50)

        def writer(prefix: str) -> None:
            for i in range(500):
                buffer.append(f"{prefix}-{i}")

        threads = [threading.Thread(target=writer, args=(str(n),)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        elements = buffer.elements()
        assert len(elements) == 50
        assert len(set(elements)) == 50
