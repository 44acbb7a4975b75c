"""Merge per-worker outcomes into one execution summary."""

from __future__ import annotations

from typing import TYPE_CHECKING

from shardrun.models.execution import ExecutionSummary

if TYPE_CHECKING:
    from shardrun.models.execution import WorkerOutcome


def summarize_workers(
    outcomes: list[WorkerOutcome],
    duration_ms: float,
    *,
    shard_index: int | None = None,
    total_shards: int | None = None,
) -> ExecutionSummary:
    """Flatten worker results and count passes and failures.

    Results are concatenated worker by worker, so each worker's results
    keep their batch order.  *duration_ms* is the wall-clock span of the
    whole run, not a sum over units, since workers overlap in time.
    """
    summary = ExecutionSummary(
        workers_used=len(outcomes),
        duration_ms=duration_ms,
        workers=list(outcomes),
        shard_index=shard_index,
        total_shards=total_shards,
    )
    for outcome in outcomes:
        summary.total_units += outcome.assigned
        summary.results.extend(outcome.results)

    summary.passed = sum(1 for r in summary.results if r.passed)
    summary.failed = len(summary.results) - summary.passed
    return summary
