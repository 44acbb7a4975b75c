"""Subprocess execution with output capture, timing and timeout handling.

Each call spawns one fresh child process, drains stdout and stderr
completely and measures wall-clock time from spawn to exit.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

SPAWN_FAILED_RETURNCODE = -1

_READ_CHUNK_SIZE = 64 * 1024
_KILL_GRACE_SECONDS = 2.0

# A unit runs in its own session so that a timeout can kill everything it spawned.
_NEW_SESSION = hasattr(os, "killpg")


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process."""

    stderr: str
    """Standard error captured from the process."""

    success: bool
    """True if returncode is 0."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""


class SubprocessError(Exception):
    """Raised when a command cannot be started at all."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: A synthetic SubprocessResult describing the failure.
        """
        super().__init__(message)
        self.result = result


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> SubprocessResult:
    """Execute *command* in a new process and capture everything it prints.

    Args:
        command: Program and arguments (e.g. ``['npx', 'playwright', 'test', 'a.test.ts']``).
        cwd: Working directory for the process.  Defaults to the current directory.
        timeout: Seconds to wait before killing the process; ``None`` waits forever.

    Returns:
        SubprocessResult with exit code, output and timing.

    Raises:
        SubprocessError: If the executable is missing or not executable.
        ValueError: If *command* is empty, *timeout* is not positive or
            *cwd* does not exist.
        OSError: If the operating system refuses to create the process for
            any other reason.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout is not None and timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.is_dir():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    logger.debug(
        "Running subprocess: %s (cwd=%s, timeout=%s)",
        " ".join(command),
        work_dir,
        timeout,
    )

    start_time = time.perf_counter()
    timed_out = False

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
            start_new_session=_NEW_SESSION,
        )
    except (FileNotFoundError, PermissionError) as exc:
        duration_ms = (time.perf_counter() - start_time) * 1000
        reason = "Command not found" if isinstance(exc, FileNotFoundError) else "Permission denied"
        logger.debug("%s: %s", reason, command[0])
        raise SubprocessError(
            f"{reason}: {command[0]}",
            result=SubprocessResult(
                returncode=SPAWN_FAILED_RETURNCODE,
                stdout="",
                stderr=str(exc),
                success=False,
                duration_ms=duration_ms,
            ),
        ) from exc

    stdout_buf = bytearray()
    stderr_buf = bytearray()
    readers = [
        asyncio.create_task(_drain(process.stdout, stdout_buf)),
        asyncio.create_task(_drain(process.stderr, stderr_buf)),
    ]

    try:
        await asyncio.wait_for(_wait_for_exit(process, readers), timeout=timeout)
    except TimeoutError:
        logger.warning("Subprocess timed out after %s seconds: %s", timeout, " ".join(command))
        timed_out = True
        _kill_process_tree(process)
        await _reap(process, readers)
    else:
        for reader in readers:
            reader.result()

    duration_ms = (time.perf_counter() - start_time) * 1000

    stdout = stdout_buf.decode("utf-8", errors="replace")
    stderr = stderr_buf.decode("utf-8", errors="replace")
    if timed_out:
        if stderr and not stderr.endswith("\n"):
            stderr += "\n"
        stderr += f"Process timed out after {timeout}s and was killed"

    if timed_out or process.returncode is None:
        returncode = SPAWN_FAILED_RETURNCODE
    else:
        returncode = process.returncode

    result = SubprocessResult(
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        success=(returncode == 0 and not timed_out),
        timed_out=timed_out,
        duration_ms=duration_ms,
    )

    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
        returncode,
        duration_ms,
        result.success,
    )
    return result


async def _drain(stream: asyncio.StreamReader | None, buffer: bytearray) -> None:
    """Append everything read from *stream* to *buffer* until EOF."""
    if stream is None:
        return
    while chunk := await stream.read(_READ_CHUNK_SIZE):
        buffer.extend(chunk)


async def _wait_for_exit(
    process: asyncio.subprocess.Process, readers: list[asyncio.Task[None]]
) -> None:
    # asyncio.wait leaves the readers running if this coroutine is cancelled
    await asyncio.wait(readers)
    await process.wait()


def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill *process* and every process it started in its session."""
    try:
        if _NEW_SESSION:
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass  # already exited


async def _reap(process: asyncio.subprocess.Process, readers: list[asyncio.Task[None]]) -> None:
    """Collect output left in the pipes and the exit status, within a bounded wait."""
    _, pending = await asyncio.wait(readers, timeout=_KILL_GRACE_SECONDS)
    for reader in pending:
        reader.cancel()
    if pending:
        logger.warning("Output pipes of pid %d still open after kill", process.pid)
        await asyncio.gather(*pending, return_exceptions=True)

    try:
        await asyncio.wait_for(process.wait(), timeout=_KILL_GRACE_SECONDS)
    except TimeoutError:
        logger.warning("Process %d did not exit after kill", process.pid)
