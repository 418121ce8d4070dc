"""Tests for BackendSupervisor using real child processes.

The backend is replaced by small Python scripts. Timing constants are
shortened with monkeypatch so the suite stays fast.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import wait_until
from thinkgate.exceptions import BackendStartError, BinaryNotFoundError, ConfigNotFoundError
from thinkgate.supervisor.log_store import LogStore
from thinkgate.supervisor.manager import BackendSupervisor, _BackendRun
from thinkgate.supervisor.state import ProcessState

# Listens on the port named in the config file, records each spawn next to
# itself, and exits on SIGTERM (default disposition).
COOPERATIVE_BACKEND = """
import os, socket, sys, time

config_path = sys.argv[sys.argv.index("--config") + 1]
with open(__file__ + ".spawns", "a") as f:
    f.write(f"{os.getpid()}\\n")

port = None
with open(config_path) as f:
    for line in f:
        if line.startswith("port:"):
            port = int(line.split(":", 1)[1])

if port:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", port))
    sock.listen()

print("backend up", flush=True)
print("deprecated flag", file=sys.stderr, flush=True)
while True:
    time.sleep(0.05)
"""

STUBBORN_BACKEND = """
import signal, time

signal.signal(signal.SIGTERM, signal.SIG_IGN)
print("ready", flush=True)
while True:
    time.sleep(0.05)
"""

CRASHING_BACKEND = """
import sys

print("fatal: bad config", file=sys.stderr, flush=True)
sys.exit(3)
"""

SHORT_LIVED_BACKEND = """
import sys, time

time.sleep(0.4)
sys.exit(0)
"""


def _messages(supervisor: BackendSupervisor) -> list[str]:
    """Log lines without their "[HH:MM:SS] " prefix."""
    return [line.split("] ", 1)[1] for line in supervisor.get_logs()]


@pytest.fixture(autouse=True)
def fast_timings(monkeypatch):
    monkeypatch.setattr("thinkgate.constants.START_SETTLE_SECONDS", 0.2)
    monkeypatch.setattr("thinkgate.constants.STOP_TIMEOUT_SECONDS", 0.5)


@pytest.fixture
def backend_config(tmp_path: Path, free_port: int) -> Path:
    path = tmp_path / "backend.yaml"
    path.write_text(f"port: {free_port}\n", encoding="utf-8")
    return path


@pytest.fixture
async def supervisors():
    """Collect supervisors created by a test and stop them afterwards."""
    created: list[BackendSupervisor] = []

    def _create(binary: Path, config: Path, port: int = 0) -> BackendSupervisor:
        supervisor = BackendSupervisor(binary, config, backend_port=port, kill_orphans=False)
        created.append(supervisor)
        return supervisor

    yield _create

    for supervisor in created:
        await supervisor.stop()


class TestStart:
    """Tests for BackendSupervisor.start()."""

    async def test_start_runs_backend_and_captures_output(self, make_script, backend_config, free_port, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config, free_port)

        await supervisor.start()

        assert supervisor.is_running
        assert supervisor.state is ProcessState.RUNNING
        assert isinstance(supervisor.pid, int)
        assert f"✓ Server started on port {free_port}" in _messages(supervisor)
        assert await wait_until(lambda: "backend up" in _messages(supervisor))
        assert await wait_until(lambda: "⚠ deprecated flag" in _messages(supervisor))

    async def test_start_is_idempotent(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config)

        await supervisor.start()
        first_pid = supervisor.pid
        await supervisor.start()

        spawns_file = Path(f"{binary}.spawns")
        assert supervisor.pid == first_pid
        assert await wait_until(spawns_file.exists)
        assert len(spawns_file.read_text().split()) == 1

    async def test_concurrent_starts_spawn_one_process(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config)

        await asyncio.gather(*(supervisor.start() for _ in range(5)))

        spawns_file = Path(f"{binary}.spawns")
        assert await wait_until(spawns_file.exists)
        assert spawns_file.read_text().split() == [str(supervisor.pid)]

    async def test_missing_binary_raises_and_leaves_nothing_running(self, tmp_path, backend_config, supervisors):
        supervisor = supervisors(tmp_path / "does-not-exist", backend_config)

        with pytest.raises(BinaryNotFoundError) as exc_info:
            await supervisor.start()

        assert "binary not found at" in str(exc_info.value)
        assert not supervisor.is_running
        assert supervisor.pid is None
        assert supervisor.state is ProcessState.STOPPED

    async def test_missing_config_raises(self, make_script, tmp_path, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, tmp_path / "missing.yaml")

        with pytest.raises(ConfigNotFoundError) as exc_info:
            await supervisor.start()

        assert "config not found at" in str(exc_info.value)
        assert not supervisor.is_running

    async def test_immediate_exit_is_a_failed_start(self, make_script, backend_config, supervisors, monkeypatch):
        monkeypatch.setattr("thinkgate.constants.START_SETTLE_SECONDS", 1.0)
        binary = make_script("cli-proxy-api", CRASHING_BACKEND)
        supervisor = supervisors(binary, backend_config)

        with pytest.raises(BackendStartError):
            await supervisor.start()

        assert not supervisor.is_running
        assert supervisor.pid is None
        assert await wait_until(lambda: "Server stopped with code: 3" in _messages(supervisor))

    async def test_backend_exit_after_start_flips_state(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", SHORT_LIVED_BACKEND)
        supervisor = supervisors(binary, backend_config)

        await supervisor.start()

        assert await wait_until(lambda: not supervisor.is_running)
        assert supervisor.state is ProcessState.STOPPED
        assert supervisor.pid is None
        assert await wait_until(lambda: "Server stopped with code: 0" in _messages(supervisor))

    async def test_restart_after_stop_spawns_new_process(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config)

        await supervisor.start()
        first_pid = supervisor.pid
        await supervisor.stop()
        await supervisor.start()

        assert supervisor.is_running
        assert supervisor.pid != first_pid


class TestStop:
    """Tests for BackendSupervisor.stop()."""

    async def test_stop_when_not_running_is_noop(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config)

        await supervisor.stop()

        assert supervisor.state is ProcessState.IDLE
        assert supervisor.get_logs() == []

    async def test_cooperative_backend_stops_gracefully(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config)
        await supervisor.start()
        pid = supervisor.pid

        await supervisor.stop()

        messages = _messages(supervisor)
        assert f"Stopping server (PID: {pid})..." in messages
        assert "✓ Server stopped gracefully" in messages
        assert not any("force killing" in m for m in messages)
        assert not supervisor.is_running
        assert supervisor.pid is None
        assert supervisor.state is ProcessState.STOPPED

    async def test_stubborn_backend_is_force_killed_after_timeout(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", STUBBORN_BACKEND)
        supervisor = supervisors(binary, backend_config)
        await supervisor.start()
        # SIGTERM is ignored only once the handler is installed
        assert await wait_until(lambda: "ready" in _messages(supervisor))

        loop = asyncio.get_running_loop()
        started = loop.time()
        await supervisor.stop()
        elapsed = loop.time() - started

        messages = _messages(supervisor)
        assert "⚠ Server didn't stop gracefully, force killing..." in messages
        assert "✓ Server stopped gracefully" not in messages
        assert elapsed >= 0.5
        assert not supervisor.is_running
        assert supervisor.state is ProcessState.STOPPED

    async def test_second_stop_is_noop(self, make_script, backend_config, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config)
        await supervisor.start()
        await supervisor.stop()

        await supervisor.stop()

        assert supervisor.state is ProcessState.STOPPED
        assert sum("Stopping server" in m for m in _messages(supervisor)) == 1


class TestHealthCheck:
    """Tests for BackendSupervisor.health_check()."""

    async def test_healthy_when_port_accepts(self, make_script, backend_config, free_port, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config, free_port)
        await supervisor.start()

        assert await wait_until(lambda: "backend up" in _messages(supervisor))
        assert await supervisor.health_check() is True

    async def test_unhealthy_when_nothing_listens(self, make_script, backend_config, free_port, supervisors):
        binary = make_script("cli-proxy-api", COOPERATIVE_BACKEND)
        supervisor = supervisors(binary, backend_config, free_port)

        assert await supervisor.health_check() is False


class TestLogs:
    """Tests for log access."""

    def test_uses_given_log_store(self, tmp_path):
        store = LogStore(capacity=5)
        supervisor = BackendSupervisor(tmp_path / "bin", tmp_path / "cfg", log_store=store, kill_orphans=False)

        store.add("hello")

        assert supervisor.log_store is store
        assert len(supervisor.get_logs()) == 1

    def test_log_capacity_applies_to_created_store(self, tmp_path):
        supervisor = BackendSupervisor(tmp_path / "bin", tmp_path / "cfg", log_capacity=3, kill_orphans=False)

        assert supervisor.log_store.capacity == 3


class TestOutputReader:
    """Tests for the per-run output reader."""

    async def test_cancel_interrupts_pending_read(self, tmp_path):
        # Arrange: a pipe that stays open with no more data, as when a
        # grandchild still holds the backend's stdout
        supervisor = BackendSupervisor(tmp_path / "bin", tmp_path / "cfg", kill_orphans=False)
        run = _BackendRun(process=MagicMock())
        stream = asyncio.StreamReader()
        reader = asyncio.create_task(supervisor._read_output(run, stream, ""))
        stream.feed_data(b"first line\n")
        assert await wait_until(lambda: "first line" in _messages(supervisor))

        # Act
        run.cancel.set()

        # Assert
        await asyncio.wait_for(reader, timeout=1.0)
        stream.feed_data(b"late line\n")
        assert _messages(supervisor) == ["first line"]

    async def test_reads_until_eof(self, tmp_path):
        supervisor = BackendSupervisor(tmp_path / "bin", tmp_path / "cfg", kill_orphans=False)
        run = _BackendRun(process=MagicMock())
        stream = asyncio.StreamReader()
        stream.feed_data(b"one\n\ntwo\n")
        stream.feed_eof()

        await asyncio.wait_for(supervisor._read_output(run, stream, "⚠ "), timeout=1.0)

        assert _messages(supervisor) == ["⚠ one", "⚠ two"]
