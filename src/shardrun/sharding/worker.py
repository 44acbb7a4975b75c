"""Worker supervisor: run one batch of units sequentially, one process per unit."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from typing import TYPE_CHECKING

from shardrun.models.execution import ExecutionResult
from shardrun.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

UNIT_PLACEHOLDER = "{unit}"

ResultSink = Callable[[int, str, int, float], None]
"""Observer called as ``sink(worker_id, unit, exit_code, duration_ms)`` after each unit."""


class WorkerFatalError(Exception):
    """Raised when a worker cannot go on because processes cannot be created at all."""

    def __init__(self, message: str, worker_id: int, results: list[ExecutionResult]) -> None:
        """Initialize with a description, the worker and what it produced so far.

        Args:
            message: Error description.
            worker_id: Index of the worker that stopped.
            results: Results recorded before the failure.
        """
        super().__init__(message)
        self.worker_id = worker_id
        self.results = results


def build_command(template: str, unit: str | Path) -> str:
    """Substitute *unit* into *template*.

    Every ``{unit}`` placeholder is replaced by the shell-quoted unit; a
    template without a placeholder gets the unit appended after a space.
    """
    quoted = shlex.quote(str(unit))
    if UNIT_PLACEHOLDER in template:
        return template.replace(UNIT_PLACEHOLDER, quoted)
    return f"{template} {quoted}"


def log_unit_result(worker_id: int, unit: str, exit_code: int, duration_ms: float) -> None:
    """Default sink: log one line per finished unit."""
    status = "PASSED" if exit_code == 0 else "FAILED"
    logger.info("Worker %d: %s - %s (%.2fs)", worker_id, status, unit, duration_ms / 1000)


async def run_worker_batch(
    command_template: str,
    batch: Sequence[str | Path],
    worker_id: int,
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    on_result: ResultSink | None = None,
) -> list[ExecutionResult]:
    """Run every unit in *batch* one after another and record each outcome.

    A unit that exits non-zero, times out or cannot be spawned becomes a
    failed ``ExecutionResult``; the worker then moves on to the next unit.

    Args:
        command_template: Command used to invoke a unit (see ``build_command``).
        batch: Units assigned to this worker, in execution order.
        worker_id: Index of this worker, stamped on every result.
        cwd: Working directory for the child processes.
        timeout: Per-unit timeout in seconds (``None`` = no limit).
        on_result: Sink notified after each unit; defaults to ``log_unit_result``.

    Returns:
        One result per unit, in batch order.

    Raises:
        WorkerFatalError: If the operating system cannot create processes.
            The exception carries the results recorded so far.
    """
    sink = on_result or log_unit_result
    results: list[ExecutionResult] = []

    logger.info("Worker %d: Starting execution of %d units", worker_id, len(batch))

    for unit in batch:
        unit_id = str(unit)
        command = build_command(command_template, unit_id)

        try:
            proc = await run_subprocess(shlex.split(command), cwd=cwd, timeout=timeout)
        except SubprocessError as exc:
            logger.warning("Worker %d: could not start %s: %s", worker_id, unit_id, exc)
            proc = exc.result
        except (OSError, NotImplementedError) as exc:
            raise WorkerFatalError(
                f"Worker {worker_id} cannot spawn processes: {exc}",
                worker_id=worker_id,
                results=results,
            ) from exc

        result = ExecutionResult(
            unit=unit_id,
            command=command,
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            duration_ms=proc.duration_ms,
            worker_id=worker_id,
            timed_out=proc.timed_out,
        )
        results.append(result)
        _notify(sink, result)

    logger.info("Worker %d: Completed execution of %d units", worker_id, len(batch))
    return results


def _notify(sink: ResultSink, result: ExecutionResult) -> None:
    try:
        sink(result.worker_id, result.unit, result.exit_code, result.duration_ms)
    except Exception:
        logger.exception("Result sink failed for %s", result.unit)
