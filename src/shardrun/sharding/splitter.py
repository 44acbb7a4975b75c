"""Shard slicing and round-robin batch assignment."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")


class InvalidShardError(ValueError):
    """Raised when a shard index lies outside ``1..total_shards``."""

    def __init__(self, shard_index: int, total_shards: int) -> None:
        """Initialize with the offending index and its bound."""
        super().__init__(
            f"Invalid shard index: {shard_index}. Must be between 1 and {total_shards}"
        )
        self.shard_index = shard_index
        self.total_shards = total_shards


class InvalidWorkerCountError(ValueError):
    """Raised when fewer than one worker is requested."""

    def __init__(self, worker_count: int) -> None:
        """Initialize with the rejected worker count."""
        super().__init__(f"worker_count must be >= 1, got {worker_count}")
        self.worker_count = worker_count


def split_into_shard(units: Sequence[T], shard_index: int, total_shards: int) -> list[T]:
    """Return the contiguous slice of *units* assigned to one shard.

    Shards are contiguous and their sizes differ by at most one: with
    ``base, extra = divmod(len(units), total_shards)`` the first *extra*
    shards hold ``base + 1`` units and the rest hold *base*.  When there
    are more shards than units the high-index shards are empty.
    Concatenating shards ``1..total_shards`` in order gives back *units*
    unchanged.

    Args:
        units: Full, ordered unit list (the same on every machine).
        shard_index: One-based index of this shard.
        total_shards: Total number of shards.

    Returns:
        The units for this shard, in their original order.

    Raises:
        InvalidShardError: If *shard_index* is not in ``1..total_shards``.
    """
    if total_shards < 1 or shard_index < 1 or shard_index > total_shards:
        raise InvalidShardError(shard_index, total_shards)

    base, extra = divmod(len(units), total_shards)
    position = shard_index - 1
    start = position * base + min(position, extra)
    end = start + base + (1 if position < extra else 0)
    return list(units[start:end])


def assign_batches(units: Sequence[T], worker_count: int) -> list[list[T]]:
    """Distribute *units* over *worker_count* batches round-robin.

    Unit ``i`` goes to batch ``i % worker_count`` so neighbouring units,
    which tend to cost about the same, land on different workers.  Exactly
    *worker_count* batches are returned; trailing ones may be empty.

    Raises:
        InvalidWorkerCountError: If *worker_count* is less than 1.
    """
    if worker_count < 1:
        raise InvalidWorkerCountError(worker_count)

    batches: list[list[T]] = [[] for _ in range(worker_count)]
    for i, unit in enumerate(units):
        batches[i % worker_count].append(unit)
    return batches
