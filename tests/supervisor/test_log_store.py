"""Unit tests for LogStore."""

from __future__ import annotations

import re

from thinkgate.supervisor.log_store import LogStore

TIMESTAMPED = re.compile(r"^\[\d{2}:\d{2}:\d{2}\] (.*)$")


class TestLogStore:
    """Tests for timestamped storage and subscribers."""

    def test_add_prefixes_timestamp(self):
        store = LogStore(capacity=10)

        line = store.add("✓ Server started on port 8318")

        match = TIMESTAMPED.match(line)
        assert match is not None
        assert match.group(1) == "✓ Server started on port 8318"
        assert store.lines() == [line]

    def test_capacity_bounds_lines(self):
        store = LogStore(capacity=2)

        for i in range(5):
            store.add(f"msg {i}")

        assert store.capacity == 2
        assert [TIMESTAMPED.match(l).group(1) for l in store.lines()] == ["msg 3", "msg 4"]

    async def test_subscriber_receives_new_lines(self):
        store = LogStore(capacity=10)
        store.add("before subscribe")

        queue = store.subscribe()
        line = store.add("after subscribe")

        assert store.subscriber_count == 1
        assert queue.qsize() == 1
        assert await queue.get() == line

    async def test_unsubscribe_stops_delivery(self):
        store = LogStore(capacity=10)
        queue = store.subscribe()

        store.unsubscribe(queue)
        store.add("not delivered")

        assert store.subscriber_count == 0
        assert queue.empty()

    async def test_unsubscribe_unknown_queue_is_noop(self):
        store = LogStore(capacity=10)
        queue = store.subscribe()
        store.unsubscribe(queue)

        store.unsubscribe(queue)

        assert store.subscriber_count == 0

    async def test_full_subscriber_queue_drops_lines(self):
        """A slow subscriber misses lines but never blocks the writer."""
        store = LogStore(capacity=10, subscriber_queue_size=2)
        slow = store.subscribe()
        fast = store.subscribe()

        for i in range(4):
            store.add(f"msg {i}")
            if not fast.empty():
                fast.get_nowait()

        assert slow.qsize() == 2
        assert len(store.lines()) == 4
