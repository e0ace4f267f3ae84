"""
storage provides the device-tagged buffer returned by Device operations.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

import torch


class DeviceKind(str, enum.Enum):
    """The closed set of backend kinds."""

    CPU = "cpu"
    CUDA = "cuda"


@dataclass(frozen=True)
class DeviceLocation:
    """A physical location; several Device handles may share one."""

    kind: DeviceKind
    gpu_id: int | None = None

    def __str__(self) -> str:
        if self.kind is DeviceKind.CPU:
            return "cpu"
        return f"cuda:{self.gpu_id}"


@dataclass(frozen=True)
class Storage:
    """A buffer produced by a backend, tagged with where it lives."""

    location: DeviceLocation
    tensor: torch.Tensor

    @property
    def is_cuda(self) -> bool:
        return self.location.kind is DeviceKind.CUDA

    @property
    def dtype(self) -> torch.dtype:
        return self.tensor.dtype

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.tensor.shape)
