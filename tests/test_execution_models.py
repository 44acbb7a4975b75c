"""Tests for shardrun.models.execution."""

from __future__ import annotations

import dataclasses

import pytest

from shardrun.models.execution import ExecutionResult, ExecutionSummary, WorkerOutcome


class TestExecutionResult:
    def test_passed_only_for_zero_exit(self) -> None:
        assert ExecutionResult(unit="a", command="run a", exit_code=0).passed
        assert not ExecutionResult(unit="a", command="run a", exit_code=1).passed
        assert not ExecutionResult(unit="a", command="run a", exit_code=-1).passed

    def test_error_hidden_on_success(self) -> None:
        result = ExecutionResult(unit="a", command="run a", exit_code=0, stderr="deprecation")
        assert result.error is None
        assert result.stderr == "deprecation"

    def test_error_reported_on_failure(self) -> None:
        result = ExecutionResult(unit="a", command="run a", exit_code=3, stderr="boom")
        assert result.error == "boom"

    def test_is_immutable(self) -> None:
        result = ExecutionResult(unit="a", command="run a", exit_code=0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.exit_code = 1  # type: ignore[misc]


class TestExecutionSummary:
    def test_empty_summary_is_success(self) -> None:
        assert ExecutionSummary().success

    def test_failures_break_success(self) -> None:
        assert not ExecutionSummary(passed=2, failed=1).success

    def test_aborted_worker_breaks_success(self) -> None:
        summary = ExecutionSummary(
            workers=[WorkerOutcome(worker_id=0), WorkerOutcome(worker_id=1, error="gone")]
        )
        assert summary.aborted_workers == [1]
        assert not summary.success

    def test_worker_outcome_completed(self) -> None:
        assert WorkerOutcome(worker_id=0).completed
        assert not WorkerOutcome(worker_id=0, error="x").completed
