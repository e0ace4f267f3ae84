"""Typed failures for tensor resolution and variable storage.

Every lookup either returns a tensor or raises one of these. Most of them
also derive from the matching builtin (KeyError, ValueError, ...) so callers
that only know the builtin contract still catch them.
"""
from __future__ import annotations

from collections.abc import Sequence


class VarbankError(Exception):
    """Base class for all varbank failures."""


class TensorNotFoundError(VarbankError, KeyError):
    """A name is absent from a non-creating backing source."""

    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.path = path

    def __str__(self) -> str:
        return f"cannot find tensor {self.path}"


class ShapeMismatchError(VarbankError, ValueError):
    """A resolved tensor's shape disagrees with the declared shape."""

    def __init__(
        self, path: str, expected: Sequence[int], got: Sequence[int]
    ) -> None:
        self.path = path
        self.expected = tuple(expected)
        self.got = tuple(got)
        super().__init__(
            f"shape mismatch for {path}, expected {self.expected}, got {self.got}"
        )


class ShapeMismatchSplitError(VarbankError, ValueError):
    """A dimension cannot be split evenly across the requested parts."""

    def __init__(self, shape: Sequence[int], dim: int, world_size: int) -> None:
        self.shape = tuple(shape)
        self.dim = dim
        self.world_size = world_size
        super().__init__(
            f"shape mismatch, cannot split {self.shape} on dim {dim} "
            f"into {world_size} parts"
        )


class UnsupportedOperationError(VarbankError, NotImplementedError):
    """The operation is not available for this source, dim or dtype."""


class DeviceMismatchError(VarbankError, ValueError):
    """An operation mixed tensors living on incompatible devices."""


class DTypeMismatchError(VarbankError, ValueError):
    """An operation mixed tensors with incompatible dtypes."""


class VariableError(VarbankError, RuntimeError):
    """A variable could not be updated from a persisted value."""


class DeviceUnavailableError(VarbankError, RuntimeError):
    """The requested accelerator is not present on this host."""


class FormatError(VarbankError, ValueError):
    """A serialized container or index file is malformed."""
