"""Cleanup of backend processes left over from a previous run.

Best effort only: another instance starting concurrently can spawn a
backend between the lookup and the kill, and a process whose command line
merely contains the binary name is matched too.
"""

from __future__ import annotations

__all__ = ["find_orphaned_pids", "kill_orphaned_processes"]

import asyncio
import logging
import shutil

from thinkgate.constants import ORPHAN_CLEANUP_WAIT_SECONDS
from thinkgate.log_config import log_event
from thinkgate.models import SystemEvent

from .log_store import LogStore


async def _run(*args: str) -> tuple[int, bytes]:
    """Run a command, returning its exit code and stdout."""
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    return proc.returncode if proc.returncode is not None else -1, stdout


async def find_orphaned_pids(binary_name: str) -> list[int]:
    """List PIDs of processes whose command line mentions binary_name.

    Returns an empty list when pgrep is unavailable or finds nothing
    (pgrep exits 1 for no match).
    """
    if shutil.which("pgrep") is None:
        return []
    try:
        returncode, stdout = await _run("pgrep", "-f", binary_name)
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="orphan_lookup_failed",
                message=f"Failed to look up orphaned processes: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return []
    if returncode != 0:
        return []
    return [int(token) for token in stdout.split() if token.isdigit()]


async def kill_orphaned_processes(binary_name: str, log_store: LogStore) -> list[int]:
    """Force-kill stray backend processes so the backend port is free.

    Args:
        binary_name: Executable name to match.
        log_store: Receives user-visible progress lines.

    Returns:
        PIDs that were found (and signalled).
    """
    pids = await find_orphaned_pids(binary_name)
    if not pids:
        return []

    log_store.add(f"⚠ Found orphaned server process(es): {' '.join(str(p) for p in pids)}")

    try:
        returncode, _ = await _run("pkill", "-9", "-f", binary_name)
        if returncode not in (0, 1):
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="orphan_kill_failed",
                    message=f"pkill exited with code {returncode}",
                    details={"pids": pids},
                ),
            )
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="orphan_kill_failed",
                message=f"Failed to kill orphaned processes: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
                details={"pids": pids},
            ),
        )

    await asyncio.sleep(ORPHAN_CLEANUP_WAIT_SECONDS)
    log_store.add("✓ Cleaned up orphaned processes")
    return pids
