"""Host-side buffers that can be turned into device storage.

Any fixed-shape array of scalars can be ingested as long as it can report
its shape and hand over a host-resident buffer. Nested lists, Python
scalars and numpy arrays are adapted through HostArray; anything else that
implements the NdArray protocol is accepted as-is.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np
import torch

from varbank.dtype import itemsize
from varbank.shape import Shape


# numpy kinds we accept: bool, signed, unsigned, float
_SCALAR_KINDS = frozenset("biuf")


@runtime_checkable
class NdArray(Protocol):
    """Capability of a host array: report a shape and yield a CPU buffer."""

    def shape(self) -> Shape:
        ...

    def to_cpu_storage(self) -> torch.Tensor:
        ...


class HostArray:
    """Adapts scalars, nested lists and numpy arrays to NdArray."""

    def __init__(self, value: object) -> None:
        try:
            array = np.asarray(value)
        except ValueError as e:
            raise ValueError(f"Host array must have a fixed shape: {e}") from e
        if array.dtype.kind not in _SCALAR_KINDS:
            raise TypeError(
                f"Host array elements must be bool, int or float, got {array.dtype}"
            )
        self._shape: Shape = tuple(int(d) for d in array.shape)
        # ascontiguousarray promotes 0-d input to 1-d.
        self.array: np.ndarray = np.ascontiguousarray(array)

    def shape(self) -> Shape:
        return self._shape

    def to_cpu_storage(self) -> torch.Tensor:
        # Shares memory with self.array.
        return torch.from_numpy(self.array)


def as_host_array(value: object) -> NdArray:
    """
    as_host_array returns value when it already implements NdArray.
    """
    if isinstance(value, NdArray):
        return value
    return HostArray(value)


def owned_buffer(
    data: bytes | bytearray | memoryview | object,
    dtype: torch.dtype | None = None,
) -> torch.Tensor:
    """Build a flat CPU tensor that owns data.

    Raw bytes are reinterpreted as dtype (required in that case); anything
    else is treated as a flat sequence of scalars and optionally cast.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        if dtype is None:
            raise ValueError("dtype is required to interpret a raw byte buffer")
        buf = data if isinstance(data, bytearray) else bytearray(data)
        width = itemsize(dtype)
        if len(buf) % width != 0:
            raise ValueError(
                f"Buffer of {len(buf)} bytes is not a multiple of {dtype} ({width} bytes)"
            )
        if not buf:
            return torch.empty(0, dtype=dtype)
        return torch.frombuffer(buf, dtype=dtype)

    flat = HostArray(data).to_cpu_storage().reshape(-1)
    if dtype is not None and flat.dtype != dtype:
        flat = flat.to(dtype)
    return flat
