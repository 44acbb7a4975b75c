"""Tests for shardrun.sharding.splitter."""

from __future__ import annotations

import pytest

from shardrun.sharding.splitter import (
    InvalidShardError,
    InvalidWorkerCountError,
    assign_batches,
    split_into_shard,
)


def _all_shards(units: list[str], total: int) -> list[list[str]]:
    return [split_into_shard(units, i, total) for i in range(1, total + 1)]


class TestSplitIntoShard:
    def test_single_shard_returns_all(self) -> None:
        units = ["a", "b", "c"]
        assert split_into_shard(units, 1, 1) == units

    def test_two_shards_first_absorbs_remainder(self) -> None:
        units = ["a", "b", "c", "d", "e"]
        assert split_into_shard(units, 1, 2) == ["a", "b", "c"]
        assert split_into_shard(units, 2, 2) == ["d", "e"]

    def test_shards_are_contiguous(self) -> None:
        units = [str(i) for i in range(7)]
        assert _all_shards(units, 3) == [["0", "1", "2"], ["3", "4"], ["5", "6"]]

    def test_more_shards_than_units(self) -> None:
        units = ["a", "b"]
        assert split_into_shard(units, 1, 5) == ["a"]
        assert split_into_shard(units, 2, 5) == ["b"]
        assert split_into_shard(units, 3, 5) == []
        assert split_into_shard(units, 5, 5) == []

    def test_empty_unit_list(self) -> None:
        assert split_into_shard([], 2, 3) == []

    def test_concatenation_reconstructs_units(self) -> None:
        for count in range(0, 25):
            units = [f"u{i}" for i in range(count)]
            for total in range(1, 9):
                shards = _all_shards(units, total)
                assert [u for shard in shards for u in shard] == units

    def test_shard_sizes_differ_by_at_most_one(self) -> None:
        for count in range(0, 25):
            units = [f"u{i}" for i in range(count)]
            for total in range(1, 9):
                sizes = [len(s) for s in _all_shards(units, total)]
                assert max(sizes) - min(sizes) <= 1
                assert sizes == sorted(sizes, reverse=True)

    def test_deterministic(self) -> None:
        units = [f"u{i}" for i in range(11)]
        assert split_into_shard(units, 3, 4) == split_into_shard(list(units), 3, 4)

    def test_does_not_mutate_input(self) -> None:
        units = ["a", "b", "c"]
        shard = split_into_shard(units, 1, 2)
        shard.append("x")
        assert units == ["a", "b", "c"]

    def test_index_zero_rejected(self) -> None:
        expected = "Invalid shard index: 0. Must be between 1 and 3"
        with pytest.raises(InvalidShardError, match=expected):
            split_into_shard(["a"], 0, 3)

    def test_index_above_total_rejected(self) -> None:
        with pytest.raises(InvalidShardError) as exc_info:
            split_into_shard(["a"], 4, 3)
        assert exc_info.value.shard_index == 4
        assert exc_info.value.total_shards == 3

    def test_zero_total_rejected(self) -> None:
        with pytest.raises(InvalidShardError):
            split_into_shard(["a"], 1, 0)

    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            split_into_shard([], -1, 2)


class TestAssignBatches:
    def test_round_robin_seven_units_three_workers(self) -> None:
        units = [f"u{i}" for i in range(7)]
        batches = assign_batches(units, 3)
        assert batches == [["u0", "u3", "u6"], ["u1", "u4"], ["u2", "u5"]]

    def test_unit_i_goes_to_batch_i_mod_n(self) -> None:
        units = [f"u{i}" for i in range(20)]
        for workers in range(1, 7):
            batches = assign_batches(units, workers)
            for i, unit in enumerate(units):
                assert unit in batches[i % workers]

    def test_batches_partition_units(self) -> None:
        units = [f"u{i}" for i in range(13)]
        batches = assign_batches(units, 4)
        flat = [u for batch in batches for u in batch]
        assert sorted(flat) == sorted(units)
        assert len(flat) == len(set(flat))

    def test_exactly_worker_count_batches(self) -> None:
        assert len(assign_batches(["a"], 4)) == 4

    def test_more_workers_than_units_leaves_trailing_empty(self) -> None:
        assert assign_batches(["a", "b"], 4) == [["a"], ["b"], [], []]

    def test_empty_units(self) -> None:
        assert assign_batches([], 2) == [[], []]

    def test_single_worker_keeps_order(self) -> None:
        units = ["c", "a", "b"]
        assert assign_batches(units, 1) == [["c", "a", "b"]]

    @pytest.mark.parametrize("workers", [0, -1])
    def test_invalid_worker_count(self, workers: int) -> None:
        with pytest.raises(InvalidWorkerCountError, match="worker_count must be >= 1"):
            assign_batches(["a"], workers)
