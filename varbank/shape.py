"""
shape normalizes shape arguments into tuples of non-negative ints.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import TypeAlias

import torch


ShapeLike: TypeAlias = int | Sequence[int] | torch.Size
Shape: TypeAlias = tuple[int, ...]


def as_shape(shape: ShapeLike) -> Shape:
    """
    as_shape accepts a single extent or a sequence of extents.
    """
    dims: Sequence[int] = (shape,) if isinstance(shape, int) else shape
    out = tuple(int(d) for d in dims)
    for d in out:
        if d < 0:
            raise ValueError(f"Shape extents must be >= 0, got {out}")
    return out


def numel(shape: Shape) -> int:
    """
    numel returns the element count of a shape.
    """
    n = 1
    for d in shape:
        n *= d
    return n
