# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-epoch batch scheduling for sentitree.

Every epoch the full training list is shuffled with a seeded torch.Generator
and cut into floor(N / B) + 1 contiguous batches:

    batch k = [k * B, (k + 1) * B), clamped to N; the last batch ends at N

so N=10, B=4 gives [0,4) [4,8) [8,10). When B divides N the last batch is
empty ([8,8) for N=8, B=4), and an empty corpus still yields one empty
batch. Empty batches are legal; the trainer skips them without an update.

Batches are slices of the shuffled copy. The caller's list is never
reordered.
"""

from typing import Iterator, Sequence, TypeVar

import torch

T = TypeVar("T")


def batch_count(num_items: int, batch_size: int) -> int:
    """Number of batches per epoch: floor(N / B) + 1."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return num_items // batch_size + 1


def batch_bounds(num_items: int, batch_size: int) -> list[tuple[int, int]]:
    """
    Half-open (start, end) index ranges of every batch in one epoch.

    The ranges are contiguous, non-overlapping and cover [0, num_items).

    Raises:
        ValueError: If batch_size < 1.
    """
    count = batch_count(num_items, batch_size)
    bounds: list[tuple[int, int]] = []
    for batch in range(count):
        start = min(batch * batch_size, num_items)
        end = min((batch + 1) * batch_size, num_items)
        if batch == count - 1:
            end = num_items
        bounds.append((start, end))
    return bounds


def shuffled(items: Sequence[T], generator: torch.Generator) -> list[T]:
    """A permuted copy of items drawn from generator."""
    order = torch.randperm(len(items), generator=generator).tolist()
    return [items[i] for i in order]


def iter_epoch_batches(
    items: Sequence[T],
    batch_size: int,
    generator: torch.Generator,
) -> Iterator[tuple[int, list[T]]]:
    """
    Shuffle once and yield (batch_index, batch) for one epoch.

    The shuffle happens before the first batch is yielded, so every call
    starts a fresh epoch ordering.
    """
    epoch_order = shuffled(items, generator)
    for index, (start, end) in enumerate(batch_bounds(len(epoch_order), batch_size)):
        yield index, epoch_order[start:end]
