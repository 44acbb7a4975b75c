"""Data models for unit execution results."""

from shardrun.models.execution import ExecutionResult, ExecutionSummary, WorkerOutcome

__all__ = [
    "ExecutionResult",
    "ExecutionSummary",
    "WorkerOutcome",
]
