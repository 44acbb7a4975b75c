"""Unit discovery, sharding and parallel execution."""

from shardrun.sharding.discovery import DiscoveryError, discover_units, matches_pattern
from shardrun.sharding.merger import summarize_workers
from shardrun.sharding.parallel_runner import (
    ParallelRunConfig,
    default_worker_count,
    run_sharded_units,
    run_units_parallel,
    select_units,
)
from shardrun.sharding.splitter import (
    InvalidShardError,
    InvalidWorkerCountError,
    assign_batches,
    split_into_shard,
)
from shardrun.sharding.worker import (
    ResultSink,
    WorkerFatalError,
    build_command,
    log_unit_result,
    run_worker_batch,
)

__all__ = [
    "DiscoveryError",
    "InvalidShardError",
    "InvalidWorkerCountError",
    "ParallelRunConfig",
    "ResultSink",
    "WorkerFatalError",
    "assign_batches",
    "build_command",
    "default_worker_count",
    "discover_units",
    "log_unit_result",
    "matches_pattern",
    "run_sharded_units",
    "run_units_parallel",
    "run_worker_batch",
    "select_units",
    "split_into_shard",
    "summarize_workers",
]
