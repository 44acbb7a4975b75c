"""Parallel execution of units across a fixed pool of workers."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shardrun.models.execution import WorkerOutcome
from shardrun.sharding.discovery import discover_units
from shardrun.sharding.merger import summarize_workers
from shardrun.sharding.splitter import assign_batches, split_into_shard
from shardrun.sharding.worker import WorkerFatalError, run_worker_batch

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from shardrun.models.execution import ExecutionSummary
    from shardrun.sharding.worker import ResultSink

logger = logging.getLogger(__name__)


def default_worker_count() -> int:
    """Number of CPU cores available, at least 1."""
    return os.cpu_count() or 1


@dataclass
class ParallelRunConfig:
    """Configuration for parallel unit execution."""

    max_workers: int = field(default_factory=default_worker_count)
    """Number of concurrent workers."""

    timeout: float | None = None
    """Per-unit timeout in seconds (``None`` = no limit)."""

    cwd: Path | None = None
    """Working directory for child processes (``None`` = current directory)."""


def _validate_run(command_template: str, config: ParallelRunConfig) -> None:
    try:
        argv = shlex.split(command_template)
    except ValueError as exc:
        raise ValueError(f"Invalid command template {command_template!r}: {exc}") from exc
    if not argv:
        raise ValueError("Command template cannot be empty")
    if config.timeout is not None and config.timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {config.timeout}")
    if config.cwd is not None and not config.cwd.is_dir():
        raise ValueError(f"Working directory does not exist: {config.cwd}")


async def run_units_parallel(
    command_template: str,
    units: Sequence[str | Path],
    *,
    config: ParallelRunConfig | None = None,
    on_result: ResultSink | None = None,
    shard_index: int | None = None,
    total_shards: int | None = None,
) -> ExecutionSummary:
    """Run *units* on ``config.max_workers`` concurrent workers.

    Units are dealt round-robin into one batch per worker.  All workers
    start together via ``asyncio.gather()``; each runs its batch
    sequentially.  Per-unit failures are recorded in the results.  A worker
    that dies (see ``WorkerFatalError``) keeps the results it produced and
    is reported in ``ExecutionSummary.aborted_workers`` while the others
    finish normally.

    Args:
        command_template: Command used to invoke each unit.
        units: Units to run.
        config: Worker count, timeout and working directory.
        on_result: Sink notified after each unit completes.
        shard_index: Shard being run, recorded on the summary.
        total_shards: Total shard count, recorded on the summary.

    Returns:
        The aggregated summary with every individual result.

    Raises:
        InvalidWorkerCountError: If ``config.max_workers`` is less than 1.
        ValueError: If the command template, timeout or working directory
            is unusable.
    """
    run_config = config or ParallelRunConfig()

    batches = assign_batches(units, run_config.max_workers)
    _validate_run(command_template, run_config)

    logger.info("Running %d units with %d workers", len(units), run_config.max_workers)

    start_time = time.perf_counter()
    worker_tasks = [
        run_worker_batch(
            command_template,
            batch,
            worker_id,
            cwd=run_config.cwd,
            timeout=run_config.timeout,
            on_result=on_result,
        )
        for worker_id, batch in enumerate(batches)
    ]
    worker_results = await asyncio.gather(*worker_tasks, return_exceptions=True)
    duration_ms = (time.perf_counter() - start_time) * 1000

    outcomes: list[WorkerOutcome] = []
    for worker_id, (batch, result) in enumerate(zip(batches, worker_results, strict=True)):
        outcome = WorkerOutcome(worker_id=worker_id, assigned=len(batch))
        if isinstance(result, WorkerFatalError):
            logger.error("Worker %d terminated early: %s", worker_id, result)
            outcome.results = list(result.results)
            outcome.error = str(result)
        elif isinstance(result, BaseException):
            logger.error("Worker %d failed unexpectedly: %r", worker_id, result)
            outcome.error = f"{type(result).__name__}: {result}"
        else:
            outcome.results = result
        outcomes.append(outcome)

    summary = summarize_workers(
        outcomes,
        duration_ms,
        shard_index=shard_index,
        total_shards=total_shards,
    )

    logger.info(
        "Parallel execution summary: %d units, %d workers, %.2fs, %d passed, %d failed",
        summary.total_units,
        summary.workers_used,
        summary.duration_ms / 1000,
        summary.passed,
        summary.failed,
    )
    if summary.aborted_workers:
        logger.warning("Workers terminated early: %s", summary.aborted_workers)

    return summary


def select_units(
    root: str | Path,
    pattern: str,
    *,
    shard_index: int | None = None,
    total_shards: int | None = None,
) -> list[Path]:
    """Discover units under *root* and keep only this shard's slice.

    Raises:
        DiscoveryError: If *root* cannot be scanned.
        InvalidShardError: If the shard index is out of range.
        ValueError: If only one of *shard_index* / *total_shards* is given.
    """
    if (shard_index is None) != (total_shards is None):
        raise ValueError("shard_index and total_shards must be given together")

    all_units = discover_units(root, pattern)
    logger.info("Found %d units matching pattern: %s", len(all_units), pattern)

    if shard_index is None or total_shards is None:
        return all_units

    shard_units = split_into_shard(all_units, shard_index, total_shards)
    logger.info("Shard %d/%d contains %d units", shard_index, total_shards, len(shard_units))
    return shard_units


async def run_sharded_units(
    command_template: str,
    root: str | Path,
    pattern: str,
    *,
    shard_index: int | None = None,
    total_shards: int | None = None,
    config: ParallelRunConfig | None = None,
    on_result: ResultSink | None = None,
) -> ExecutionSummary:
    """Discover, optionally shard, then run units in parallel.

    This is the entry point for a CI matrix where every runner passes its
    own ``shard_index`` and the same ``total_shards``.  A shard that ends
    up empty produces an empty summary without spawning anything.
    """
    units = select_units(root, pattern, shard_index=shard_index, total_shards=total_shards)
    return await run_units_parallel(
        command_template,
        units,
        config=config,
        on_result=on_result,
        shard_index=shard_index,
        total_shards=total_shards,
    )
