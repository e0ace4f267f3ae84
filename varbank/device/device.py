"""Device handles and the single dispatch point for storage creation.

A Device is either the host CPU or one CUDA ordinal. Every operation that
produces a buffer (random fills, ones/zeros, host array ingestion, owned
buffers) goes through exactly one `match` here, which hands the work to the
backend for that kind and tags the result with the device's location.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import torch
from typing_extensions import assert_never

from varbank.device.backend import BackendDevice, CpuBackend, CudaBackend
from varbank.device.host import as_host_array, owned_buffer
from varbank.device.storage import DeviceKind, DeviceLocation, Storage
from varbank.shape import ShapeLike, as_shape


_CPU_BACKEND = CpuBackend()


@lru_cache(maxsize=None)
def _cuda_backend(ordinal: int) -> CudaBackend:
    return CudaBackend(ordinal)


@dataclass(frozen=True)
class Device:
    """A compute target: the host CPU or a CUDA ordinal."""

    kind: DeviceKind
    ordinal: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", DeviceKind(self.kind))
        match self.kind:
            case DeviceKind.CPU:
                if self.ordinal is not None:
                    raise ValueError("CPU devices do not take an ordinal")
            case DeviceKind.CUDA:
                if self.ordinal is None or self.ordinal < 0:
                    raise ValueError(
                        f"CUDA devices need an ordinal >= 0, got {self.ordinal}"
                    )
            case _:
                assert_never(self.kind)

    @classmethod
    def cpu(cls) -> "Device":
        return cls(DeviceKind.CPU)

    @classmethod
    def cuda(cls, ordinal: int = 0) -> "Device":
        """A CUDA handle; availability is checked on first use."""
        return cls(DeviceKind.CUDA, int(ordinal))

    @classmethod
    def new_cuda(cls, ordinal: int = 0) -> "Device":
        """A CUDA handle that is validated immediately."""
        device = cls.cuda(ordinal)
        device.backend()
        return device

    @classmethod
    def cuda_if_available(cls, ordinal: int = 0) -> "Device":
        if torch.cuda.is_available():
            return cls.new_cuda(ordinal)
        return cls.cpu()

    @classmethod
    def parse(cls, value: "str | torch.device | Device") -> "Device":
        """Accept 'cpu', 'cuda', 'cuda:N' or a torch.device."""
        if isinstance(value, Device):
            return value
        try:
            td = torch.device(value)
        except RuntimeError as e:
            raise ValueError(f"Invalid device '{value}': {e}") from e
        match td.type:
            case "cpu":
                return cls.cpu()
            case "cuda":
                return cls.cuda(0 if td.index is None else td.index)
            case other:
                raise ValueError(f"Unsupported device type '{other}'")

    @classmethod
    def of(cls, tensor: torch.Tensor) -> "Device":
        """The Device a tensor currently lives on."""
        return cls.parse(tensor.device)

    @property
    def is_cuda(self) -> bool:
        return self.kind is DeviceKind.CUDA

    @property
    def torch_device(self) -> torch.device:
        match self.kind:
            case DeviceKind.CPU:
                return torch.device("cpu")
            case DeviceKind.CUDA:
                return torch.device("cuda", self.ordinal)
            case _:
                assert_never(self.kind)

    def location(self) -> DeviceLocation:
        match self.kind:
            case DeviceKind.CPU:
                return DeviceLocation(DeviceKind.CPU)
            case DeviceKind.CUDA:
                return DeviceLocation(DeviceKind.CUDA, self.ordinal)
            case _:
                assert_never(self.kind)

    def same_device(self, other: "Device") -> bool:
        match (self.kind, other.kind):
            case (DeviceKind.CPU, DeviceKind.CPU):
                return True
            case (DeviceKind.CUDA, DeviceKind.CUDA):
                return self.ordinal == other.ordinal
            case _:
                return False

    def backend(self) -> BackendDevice:
        match self.kind:
            case DeviceKind.CPU:
                return _CPU_BACKEND
            case DeviceKind.CUDA:
                assert self.ordinal is not None
                return _cuda_backend(self.ordinal)
            case _:
                assert_never(self.kind)

    def __str__(self) -> str:
        return str(self.location())

    # ─────────────────────────────────────────────────────────────────────
    # Storage creation
    # ─────────────────────────────────────────────────────────────────────

    def _wrap(self, tensor: torch.Tensor) -> Storage:
        return Storage(self.location(), tensor)

    def rand_uniform(
        self, shape: ShapeLike, dtype: torch.dtype, lo: float, up: float
    ) -> Storage:
        return self._wrap(
            self.backend().rand_uniform(as_shape(shape), dtype, float(lo), float(up))
        )

    def rand_normal(
        self, shape: ShapeLike, dtype: torch.dtype, mean: float, std: float
    ) -> Storage:
        return self._wrap(
            self.backend().rand_normal(as_shape(shape), dtype, float(mean), float(std))
        )

    def ones(self, shape: ShapeLike, dtype: torch.dtype) -> Storage:
        return self._wrap(self.backend().ones(as_shape(shape), dtype))

    def zeros(self, shape: ShapeLike, dtype: torch.dtype) -> Storage:
        return self._wrap(self.backend().zeros(as_shape(shape), dtype))

    def storage(self, array: object) -> Storage:
        """Ingest a fixed-shape host array.

        The CPU path keeps the host buffer as-is; the CUDA path copies it to
        the device.
        """
        host = as_host_array(array)
        cpu = host.to_cpu_storage().reshape(host.shape())
        return self._wrap(self.backend().storage_from_cpu_storage(cpu))

    def storage_owned(
        self, data: object, dtype: torch.dtype | None = None
    ) -> Storage:
        """Take ownership of a flat buffer (raw bytes or scalars)."""
        cpu = owned_buffer(data, dtype)
        return self._wrap(self.backend().storage_from_cpu_storage(cpu))
