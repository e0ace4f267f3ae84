"""Hierarchical, source-polymorphic access to named tensors.

Model-construction code holds a Resolver, pushes one prefix per sub-module
and asks for tensors by short name:

    vb = Resolver.from_safetensors(["model.safetensors"], torch.float16, Device.cpu())
    attn = vb.pp("h.0").pp("attn")
    w = attn.get((3 * d, d), "c_attn.weight")   # looks up "h.0.attn.c_attn.weight"

All Resolvers derived from one another share the same backing source, dtype
and device. Prefixes are kept as a tuple and only joined at lookup time.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

import torch
from typing_extensions import assert_never

from varbank.builder.shard import ShardedSliceExtractor, check_partition
from varbank.console import logger
from varbank.device import Device
from varbank.errors import ShapeMismatchError, TensorNotFoundError, UnsupportedOperationError
from varbank.init import ZEROS, Init
from varbank.load.checkpoint import CheckpointLoader
from varbank.shape import ShapeLike, as_shape
from varbank.source import (
    BackingSource,
    NpzSource,
    SafetensorsSource,
    StoreSource,
    TensorMapSource,
    ZerosSource,
)
from varbank.store import VariableStore


@dataclass(frozen=True)
class _TensorData:
    source: BackingSource
    dtype: torch.dtype
    device: Device


class Resolver:
    """
    Resolver looks tensors up by dotted path in one backing source.

    get() always returns a tensor of exactly the requested shape or raises;
    there is no broadcasting, reshaping or default on a miss. Use
    contains_tensor() to probe optional weights first.
    """
    __slots__ = ("_data", "_path")

    def __init__(
        self,
        source: BackingSource,
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> None:
        self._data = _TensorData(
            source=source,
            dtype=dtype,
            device=device if device is not None else Device.cpu(),
        )
        self._path: tuple[str, ...] = ()

    # ─────────────────────────────────────────────────────────────────────
    # Constructors
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def from_safetensors(
        cls,
        paths: Iterable[str | Path],
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> "Resolver":
        source = SafetensorsSource.open(paths)
        logger.info(
            f"Indexed {len(source.routing)} tensors across {len(source.files)} safetensors file(s)"
        )
        return cls(source, dtype, device)

    @classmethod
    def from_safetensors_index(
        cls,
        index_path: str | Path,
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> "Resolver":
        """Open every shard listed in a *.index.json weight_map."""
        return cls(CheckpointLoader().sharded(Path(index_path)), dtype, device)

    @classmethod
    def from_npz(
        cls,
        path: str | Path,
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> "Resolver":
        return cls(NpzSource.open(path), dtype, device)

    @classmethod
    def from_tensors(
        cls,
        tensors: Mapping[str, torch.Tensor],
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> "Resolver":
        return cls(TensorMapSource(tensors=dict(tensors)), dtype, device)

    @classmethod
    def zeros(
        cls, dtype: torch.dtype = torch.float32, device: Device | None = None
    ) -> "Resolver":
        return cls(ZerosSource(), dtype, device)

    @classmethod
    def from_store(
        cls,
        store: VariableStore,
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> "Resolver":
        return cls(StoreSource(store=store), dtype, device)

    @classmethod
    def from_checkpoint(
        cls,
        path: str | Path,
        dtype: torch.dtype = torch.float32,
        device: Device | None = None,
    ) -> "Resolver":
        """Pick the source from the file: safetensors, index, npz or torch pickle."""
        return cls(CheckpointLoader().source(Path(path)), dtype, device)

    # ─────────────────────────────────────────────────────────────────────
    # Prefixes and defaults
    # ─────────────────────────────────────────────────────────────────────

    def push_prefix(self, segment: str) -> "Resolver":
        """A Resolver one level deeper, sharing this one's source."""
        child = Resolver.__new__(Resolver)
        child._data = self._data
        child._path = self._path + (segment,)
        return child

    def pp(self, segment: str) -> "Resolver":
        """Short alias for push_prefix."""
        return self.push_prefix(segment)

    @property
    def prefix(self) -> tuple[str, ...]:
        return self._path

    @property
    def dtype(self) -> torch.dtype:
        return self._data.dtype

    @property
    def device(self) -> Device:
        return self._data.device

    @property
    def source(self) -> BackingSource:
        return self._data.source

    def path(self, name: str) -> str:
        """The full lookup key for name under the current prefix."""
        if not self._path:
            return name
        return ".".join(self._path) + "." + name

    # ─────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────

    def get(self, shape: ShapeLike, name: str) -> torch.Tensor:
        """Resolve name and check it has exactly shape.

        Serialized sources are cast to the Resolver's dtype and placed on its
        device; in-memory tensors are cloned as they are; a VariableStore
        creates the entry (zero-initialized) when it is missing.
        """
        dims = as_shape(shape)
        path = self.path(name)
        data = self._data
        match data.source:
            case ZerosSource():
                tensor = data.device.zeros(dims, data.dtype).tensor.contiguous()
            case TensorMapSource(tensors=tensors):
                found = tensors.get(path)
                if found is None:
                    raise TensorNotFoundError(path)
                tensor = found.clone()
            case StoreSource(store=store):
                tensor = store.get(dims, path, ZEROS, data.dtype, data.device)
            case NpzSource(archive=archive):
                array = archive.get(path)
                if array is None:
                    raise TensorNotFoundError(path)
                tensor = data.device.storage(array).tensor.to(data.dtype)
            case SafetensorsSource() as st:
                view = st.view(path)
                if view is None:
                    raise TensorNotFoundError(path)
                tensor = view.load(data.device).to(data.dtype)
            case _:
                assert_never(data.source)
        if tuple(tensor.shape) != dims:
            raise ShapeMismatchError(path, dims, tuple(tensor.shape))
        return tensor

    def get_or_init(self, shape: ShapeLike, name: str, init: Init) -> torch.Tensor:
        """Like get, but a VariableStore creates missing entries with init."""
        data = self._data
        match data.source:
            case StoreSource(store=store):
                return store.get(shape, self.path(name), init, data.dtype, data.device)
            case _:
                return self.get(shape, name)

    def contains_tensor(self, name: str) -> bool:
        """Whether get(name) would find something (zeros always does)."""
        path = self.path(name)
        match self._data.source:
            case ZerosSource():
                return True
            case TensorMapSource(tensors=tensors):
                return path in tensors
            case StoreSource(store=store):
                return path in store
            case NpzSource(archive=archive):
                return path in archive
            case SafetensorsSource(routing=routing):
                return path in routing
            case _:
                assert_never(self._data.source)

    def get_sharded(
        self, name: str, dim: int, rank: int, world_size: int
    ) -> torch.Tensor:
        """Read rank's block of name along dim, split world_size ways.

        Only safetensors sources can do this. Everything is validated before
        any tensor bytes are read. The stored dtype is kept.
        """
        source = self._data.source
        if not isinstance(source, SafetensorsSource):
            raise UnsupportedOperationError(
                f"get_sharded is only available for safetensors, not {type(source).__name__}"
            )
        check_partition(dim, rank, world_size)
        path = self.path(name)
        view = source.view(path)
        if view is None:
            raise TensorNotFoundError(path)
        return ShardedSliceExtractor(view).extract(dim, rank, world_size, self._data.device)

    # ─────────────────────────────────────────────────────────────────────
    # Lifetime
    # ─────────────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Release file handles of the shared source (all derived Resolvers)."""
        match self._data.source:
            case SafetensorsSource() | NpzSource() as closable:
                closable.close()
            case TensorMapSource() | ZerosSource() | StoreSource():
                pass
            case _:
                assert_never(self._data.source)

    def __enter__(self) -> "Resolver":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Resolver(source={type(self._data.source).__name__}, "
            f"prefix={'.'.join(self._path)!r}, dtype={self.dtype}, device={self.device})"
        )
