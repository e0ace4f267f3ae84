"""
backend provides the per-device-kind implementations of storage creation.
"""
from __future__ import annotations

from typing import Protocol

import torch

from varbank.errors import DeviceUnavailableError, UnsupportedOperationError
from varbank.shape import Shape


class BackendDevice(Protocol):
    """The fixed set of storage-producing operations a backend implements."""

    def rand_uniform(
        self, shape: Shape, dtype: torch.dtype, lo: float, up: float
    ) -> torch.Tensor:
        ...

    def rand_normal(
        self, shape: Shape, dtype: torch.dtype, mean: float, std: float
    ) -> torch.Tensor:
        ...

    def ones(self, shape: Shape, dtype: torch.dtype) -> torch.Tensor:
        ...

    def zeros(self, shape: Shape, dtype: torch.dtype) -> torch.Tensor:
        ...

    def storage_from_cpu_storage(self, tensor: torch.Tensor) -> torch.Tensor:
        ...


def _require_float(op: str, dtype: torch.dtype) -> None:
    if not dtype.is_floating_point:
        raise UnsupportedOperationError(
            f"{op} requires a floating point dtype, got {dtype}"
        )


class CpuBackend:
    """
    CpuBackend executes storage creation in-process on the host.
    """
    device: torch.device = torch.device("cpu")

    def rand_uniform(
        self, shape: Shape, dtype: torch.dtype, lo: float, up: float
    ) -> torch.Tensor:
        _require_float("rand_uniform", dtype)
        return torch.empty(shape, dtype=dtype, device=self.device).uniform_(lo, up)

    def rand_normal(
        self, shape: Shape, dtype: torch.dtype, mean: float, std: float
    ) -> torch.Tensor:
        _require_float("rand_normal", dtype)
        return torch.empty(shape, dtype=dtype, device=self.device).normal_(mean, std)

    def ones(self, shape: Shape, dtype: torch.dtype) -> torch.Tensor:
        return torch.ones(shape, dtype=dtype, device=self.device)

    def zeros(self, shape: Shape, dtype: torch.dtype) -> torch.Tensor:
        return torch.zeros(shape, dtype=dtype, device=self.device)

    def storage_from_cpu_storage(self, tensor: torch.Tensor) -> torch.Tensor:
        return tensor


class CudaBackend:
    """
    CudaBackend creates storage resident on one CUDA ordinal.

    Construction fails when CUDA is missing or the ordinal does not exist,
    so every later call can assume the device is usable.
    """
    def __init__(self, ordinal: int) -> None:
        if not torch.cuda.is_available():
            raise DeviceUnavailableError("CUDA is not available on this host")
        count = torch.cuda.device_count()
        if not 0 <= ordinal < count:
            raise DeviceUnavailableError(
                f"CUDA ordinal {ordinal} out of range, {count} device(s) present"
            )
        self.ordinal = ordinal
        self.device = torch.device("cuda", ordinal)

    def rand_uniform(
        self, shape: Shape, dtype: torch.dtype, lo: float, up: float
    ) -> torch.Tensor:
        _require_float("rand_uniform", dtype)
        return torch.empty(shape, dtype=dtype, device=self.device).uniform_(lo, up)

    def rand_normal(
        self, shape: Shape, dtype: torch.dtype, mean: float, std: float
    ) -> torch.Tensor:
        _require_float("rand_normal", dtype)
        return torch.empty(shape, dtype=dtype, device=self.device).normal_(mean, std)

    def ones(self, shape: Shape, dtype: torch.dtype) -> torch.Tensor:
        return torch.ones(shape, dtype=dtype, device=self.device)

    def zeros(self, shape: Shape, dtype: torch.dtype) -> torch.Tensor:
        return torch.zeros(shape, dtype=dtype, device=self.device)

    def storage_from_cpu_storage(self, tensor: torch.Tensor) -> torch.Tensor:
        return tensor.to(self.device)
