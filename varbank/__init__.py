"""varbank: named tensor storage and hierarchical weight resolution.

Two halves:
- VariableStore keeps trainable tensors by dotted path and persists them as
  a single safetensors file.
- Resolver looks tensors up by path in a backing source (safetensors files,
  an npz archive, an in-memory map, zeros or a VariableStore) and checks
  their shape, optionally reading only one tensor-parallel shard.
"""
from __future__ import annotations

from varbank.builder import Resolver, ShardedSliceExtractor
from varbank.config.resolver import ResolverConfig
from varbank.device import Device, DeviceKind, DeviceLocation, Storage
from varbank.errors import (
    DeviceMismatchError,
    DeviceUnavailableError,
    DTypeMismatchError,
    FormatError,
    ShapeMismatchError,
    ShapeMismatchSplitError,
    TensorNotFoundError,
    UnsupportedOperationError,
    VarbankError,
    VariableError,
)
from varbank.init import (
    DEFAULT_KAIMING_NORMAL,
    DEFAULT_KAIMING_UNIFORM,
    ONES,
    ZEROS,
    ConstInit,
    Init,
    KaimingInit,
    NonLinearity,
    RandnInit,
    UniformInit,
)
from varbank.store import VariableStore
from varbank.variable import Variable

__all__ = [
    "ConstInit",
    "DEFAULT_KAIMING_NORMAL",
    "DEFAULT_KAIMING_UNIFORM",
    "DTypeMismatchError",
    "Device",
    "DeviceKind",
    "DeviceLocation",
    "DeviceMismatchError",
    "DeviceUnavailableError",
    "FormatError",
    "Init",
    "KaimingInit",
    "NonLinearity",
    "ONES",
    "RandnInit",
    "Resolver",
    "ResolverConfig",
    "ShapeMismatchError",
    "ShapeMismatchSplitError",
    "ShardedSliceExtractor",
    "Storage",
    "TensorNotFoundError",
    "UniformInit",
    "UnsupportedOperationError",
    "VarbankError",
    "Variable",
    "VariableError",
    "VariableStore",
    "ZEROS",
]
