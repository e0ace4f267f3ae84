"""
variable provides the mutable single-slot tensor container.
"""
from __future__ import annotations

import threading

import torch

from varbank.device import Device
from varbank.errors import DeviceMismatchError, DTypeMismatchError, ShapeMismatchError


class Variable:
    """
    Variable owns one tensor whose contents can be replaced in place.

    The tensor object itself never changes, so every handle obtained through
    as_tensor() observes later updates. Floating point values are trainable.
    """
    def __init__(self, path: str, value: torch.Tensor) -> None:
        self.path: str = path
        value = value.detach()
        if value.is_floating_point():
            value.requires_grad_(True)
        self._value: torch.Tensor = value
        self._lock = threading.Lock()

    @property
    def value(self) -> torch.Tensor:
        return self._value

    def as_tensor(self) -> torch.Tensor:
        return self._value

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self._value.shape)

    @property
    def dtype(self) -> torch.dtype:
        return self._value.dtype

    @property
    def device(self) -> Device:
        return Device.of(self._value)

    def set(self, value: torch.Tensor) -> None:
        """
        set replaces the contents, keeping shape, dtype and device.
        """
        if tuple(value.shape) != self.shape:
            raise ShapeMismatchError(self.path, self.shape, tuple(value.shape))
        if value.dtype != self.dtype:
            raise DTypeMismatchError(
                f"cannot set {self.path} ({self.dtype}) from a {value.dtype} tensor"
            )
        if not Device.of(value).same_device(self.device):
            raise DeviceMismatchError(
                f"cannot set {self.path} on {self.device} from a tensor on "
                f"{Device.of(value)}"
            )
        with self._lock, torch.no_grad():
            self._value.copy_(value)

    def __repr__(self) -> str:
        return (
            f"Variable(path={self.path!r}, shape={self.shape}, "
            f"dtype={self.dtype}, device={self.device})"
        )
