"""Execution result models shared by workers, the orchestrator and reporters."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running one unit in its own child process."""

    unit: str
    """Identifier of the unit (a test file path)."""

    command: str
    """Full command line that was invoked."""

    exit_code: int
    """Process exit code (0 = success, ``-1`` when it never ran to completion)."""

    stdout: str = ""
    """Captured standard output."""

    stderr: str = ""
    """Captured standard error."""

    duration_ms: float = 0.0
    """Wall-clock time from process start to process exit."""

    worker_id: int = 0
    """Index of the worker that ran the unit."""

    timed_out: bool = False
    """True if the process was killed after exceeding the unit timeout."""

    @property
    def passed(self) -> bool:
        """Return True when the process exited with code 0."""
        return self.exit_code == 0

    @property
    def error(self) -> str | None:
        """Captured stderr, reported only for failed units."""
        if self.passed:
            return None
        return self.stderr


@dataclass
class WorkerOutcome:
    """Everything one worker produced, including how it ended."""

    worker_id: int
    results: list[ExecutionResult] = field(default_factory=list)
    assigned: int = 0
    """Number of units in the worker's batch."""

    error: str = ""
    """Reason the worker terminated early (empty when it finished its batch)."""

    @property
    def completed(self) -> bool:
        """True if the worker ran its whole batch."""
        return not self.error


@dataclass
class ExecutionSummary:
    """Aggregate of all results for one invocation."""

    total_units: int = 0
    workers_used: int = 0
    duration_ms: float = 0.0
    """Wall clock from dispatch to the last worker finishing."""

    passed: int = 0
    failed: int = 0
    results: list[ExecutionResult] = field(default_factory=list)
    workers: list[WorkerOutcome] = field(default_factory=list)
    shard_index: int | None = None
    total_shards: int | None = None

    @property
    def aborted_workers(self) -> list[int]:
        """IDs of workers that stopped before finishing their batch."""
        return [w.worker_id for w in self.workers if not w.completed]

    @property
    def failures(self) -> list[ExecutionResult]:
        """Results whose unit did not pass."""
        return [r for r in self.results if not r.passed]

    @property
    def success(self) -> bool:
        """True when every unit passed and every worker finished."""
        return self.failed == 0 and not self.aborted_workers
