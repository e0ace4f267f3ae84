"""Tensor-parallel partitioned reads straight from serialized bytes.

With tensor parallelism every worker only needs one contiguous block of a
weight along dim 0 (rows) or dim 1 (columns). Reading the full tensor and
slicing it would make each of N workers pull the whole file; instead the
extractor works out which byte ranges hold the block and copies only those.

    get_sharded("w", dim=0, rank=0, world_size=2)  ==  w[: n // 2]
    get_sharded("w", dim=0, rank=1, world_size=2)  ==  w[n // 2 :]
    get_sharded("w", dim=1, rank=0, world_size=2)  ==  w[:, : m // 2]

Rows are contiguous, so dim 0 is a single range. Columns are not: for dim 1
every row contributes its own sub-range, and the pieces are concatenated in
row order. Both rely on the dense row-major layout that SafetensorsFile
checks when it opens a file.
"""
from __future__ import annotations

import torch

from varbank.device import Device
from varbank.errors import ShapeMismatchSplitError, UnsupportedOperationError
from varbank.format import TensorView
from varbank.shape import Shape, numel


SHARDABLE_DIMS = (0, 1)


def check_partition(dim: int, rank: int, world_size: int) -> None:
    """
    check_partition validates the arguments that do not depend on the tensor.
    """
    if world_size < 1:
        raise ValueError(f"world_size must be >= 1, got {world_size}")
    if not 0 <= rank < world_size:
        raise ValueError(f"rank must be in [0, {world_size}), got {rank}")
    if dim not in SHARDABLE_DIMS:
        raise UnsupportedOperationError(
            f"get_sharded only supports dims {SHARDABLE_DIMS}, got {dim}"
        )


class ShardedSliceExtractor:
    """
    ShardedSliceExtractor cuts one rank's block out of a TensorView.
    """
    def __init__(self, view: TensorView) -> None:
        self.view = view

    def block(self, dim: int, rank: int, world_size: int) -> tuple[int, int]:
        """Return [start, stop) along dim for rank, validating divisibility."""
        check_partition(dim, rank, world_size)
        shape = self.view.shape
        if dim >= len(shape):
            raise UnsupportedOperationError(
                f"cannot shard {self.view.name} with shape {shape} on dim {dim}"
            )
        size = shape[dim]
        if size % world_size != 0:
            raise ShapeMismatchSplitError(shape, dim, world_size)
        block_size = size // world_size
        start = rank * block_size
        return start, start + block_size

    def byte_ranges(self, dim: int, start: int, stop: int) -> list[tuple[int, int]]:
        """Byte ranges (relative to the tensor) covering [start, stop) on dim."""
        shape = self.view.shape
        width = self.view.itemsize
        if dim == 0:
            row = numel(shape[1:]) * width
            return [(start * row, stop * row)]
        inner = numel(shape[2:]) * width
        row = shape[1] * inner
        return [
            (r * row + start * inner, r * row + stop * inner)
            for r in range(shape[0])
        ]

    def shard_shape(self, dim: int, start: int, stop: int) -> Shape:
        dims = list(self.view.shape)
        dims[dim] = stop - start
        return tuple(dims)

    def extract(
        self, dim: int, rank: int, world_size: int, device: Device
    ) -> torch.Tensor:
        """Read rank's block; the stored dtype is kept as-is."""
        start, stop = self.block(dim, rank, world_size)
        raw = self.view.read(self.byte_ranges(dim, start, stop))
        storage = device.storage_owned(raw, self.view.dtype)
        return storage.tensor.reshape(self.shard_shape(dim, start, stop))
