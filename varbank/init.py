"""Initialization policies for freshly created variables.

A policy only matters the first time a path is requested from a
VariableStore: it decides the starting value (constant, normal, uniform or
Kaiming-scaled). Policies are Pydantic models discriminated on `kind`, so
they can also be written in config files.
"""
from __future__ import annotations

import enum
import math
from typing import Annotated, Literal, TypeAlias

import torch
from pydantic import Field, model_validator

from varbank.config import Config, NonNegativeFloat, PositiveFloat
from varbank.device import Device
from varbank.shape import Shape, ShapeLike, as_shape


class InitKind(str, enum.Enum):
    """Discriminator for the policy union."""

    CONST = "const"
    RANDN = "randn"
    UNIFORM = "uniform"
    KAIMING = "kaiming"


class ConstInit(Config):
    """Every element set to `value`."""

    kind: Literal[InitKind.CONST] = InitKind.CONST
    value: float = 0.0

    def tensor(
        self, shape: ShapeLike, dtype: torch.dtype, device: Device
    ) -> torch.Tensor:
        if self.value == 0.0:
            return device.zeros(shape, dtype).tensor
        if self.value == 1.0:
            return device.ones(shape, dtype).tensor
        return device.ones(shape, dtype).tensor.fill_(self.value)


class RandnInit(Config):
    """Samples from N(mean, stdev^2)."""

    kind: Literal[InitKind.RANDN] = InitKind.RANDN
    mean: float = 0.0
    stdev: NonNegativeFloat = 1.0

    def tensor(
        self, shape: ShapeLike, dtype: torch.dtype, device: Device
    ) -> torch.Tensor:
        return device.rand_normal(shape, dtype, self.mean, self.stdev).tensor


class UniformInit(Config):
    """Samples from U(lo, up)."""

    kind: Literal[InitKind.UNIFORM] = InitKind.UNIFORM
    lo: float = -1.0
    up: float = 1.0

    @model_validator(mode="after")
    def _ordered(self) -> "UniformInit":
        if self.lo > self.up:
            raise ValueError(f"uniform init needs lo <= up, got {self.lo} > {self.up}")
        return self

    def tensor(
        self, shape: ShapeLike, dtype: torch.dtype, device: Device
    ) -> torch.Tensor:
        return device.rand_uniform(shape, dtype, self.lo, self.up).tensor


class NonLinearity(str, enum.Enum):
    """Activation following the layer, used to pick the Kaiming gain."""

    RELU = "relu"
    LINEAR = "linear"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    SELU = "selu"

    def gain(self) -> float:
        match self:
            case NonLinearity.RELU:
                return math.sqrt(2.0)
            case NonLinearity.TANH:
                return 5.0 / 3.0
            case NonLinearity.LINEAR | NonLinearity.SIGMOID:
                return 1.0
            case NonLinearity.SELU:
                return 0.75
            case _:
                raise ValueError(self)


class KaimingInit(Config):
    """He initialization scaled by fan-in or fan-out.

    For a weight of shape (out, in, *kernel) the fan-in is in * prod(kernel)
    and the fan-out is out * prod(kernel).
    """

    kind: Literal[InitKind.KAIMING] = InitKind.KAIMING
    dist: Literal["normal", "uniform"] = "normal"
    fan: Literal["fan_in", "fan_out"] = "fan_in"
    non_linearity: NonLinearity = NonLinearity.RELU
    gain: PositiveFloat | None = None

    def fan_size(self, shape: Shape) -> int:
        receptive = math.prod(shape[2:])
        if self.fan == "fan_in":
            return shape[1] * receptive if len(shape) >= 2 else 1
        return shape[0] * receptive if len(shape) >= 1 else 1

    def std(self, shape: Shape) -> float:
        gain = self.gain if self.gain is not None else self.non_linearity.gain()
        return gain / math.sqrt(max(self.fan_size(shape), 1))

    def tensor(
        self, shape: ShapeLike, dtype: torch.dtype, device: Device
    ) -> torch.Tensor:
        dims = as_shape(shape)
        std = self.std(dims)
        if self.dist == "uniform":
            bound = math.sqrt(3.0) * std
            return device.rand_uniform(dims, dtype, -bound, bound).tensor
        return device.rand_normal(dims, dtype, 0.0, std).tensor


Init: TypeAlias = Annotated[
    ConstInit | RandnInit | UniformInit | KaimingInit,
    Field(discriminator="kind"),
]

ZEROS = ConstInit(value=0.0)
ONES = ConstInit(value=1.0)
DEFAULT_KAIMING_NORMAL = KaimingInit()
DEFAULT_KAIMING_UNIFORM = KaimingInit(dist="uniform")
