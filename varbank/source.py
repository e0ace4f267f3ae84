"""The closed set of places a Resolver can take tensors from.

Each variant is a small frozen dataclass; the Resolver dispatches on them
with a single `match`, so adding a variant means touching exactly that match
(and `assert_never` flags the places that were missed).

- SafetensorsSource: one or more safetensors files plus a name→file routing
  table built once by scanning every file (a later file wins on duplicates).
- NpzSource: a single npz archive.
- TensorMapSource: an in-memory name→tensor table.
- ZerosSource: a fresh zero tensor for any name.
- StoreSource: a live VariableStore; the only variant that creates entries.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

import torch

from varbank.format import NpzArchive, SafetensorsFile, TensorView
from varbank.store import VariableStore


@dataclass(frozen=True)
class SafetensorsSource:
    """Several safetensors files addressed through one routing table."""

    files: tuple[SafetensorsFile, ...]
    routing: Mapping[str, int]

    @classmethod
    def open(cls, paths: Iterable[str | Path]) -> "SafetensorsSource":
        files: list[SafetensorsFile] = []
        try:
            for p in paths:
                files.append(SafetensorsFile(p))
        except BaseException:
            for f in files:
                f.close()
            raise
        routing: dict[str, int] = {}
        for index, f in enumerate(files):
            for name in f.names():
                routing[name] = index
        return cls(files=tuple(files), routing=routing)

    def view(self, path: str) -> TensorView | None:
        index = self.routing.get(path)
        if index is None:
            return None
        return self.files[index].view(path)

    def close(self) -> None:
        for f in self.files:
            f.close()


@dataclass(frozen=True)
class NpzSource:
    """A single npz archive; whole-array reads only."""

    archive: NpzArchive

    @classmethod
    def open(cls, path: str | Path) -> "NpzSource":
        return cls(archive=NpzArchive(path))

    def close(self) -> None:
        self.archive.close()


@dataclass(frozen=True)
class TensorMapSource:
    """Tensors already in memory, looked up by exact name."""

    tensors: Mapping[str, torch.Tensor]


@dataclass(frozen=True)
class ZerosSource:
    """Produces zeros of whatever shape is asked for; names are ignored."""


@dataclass(frozen=True)
class StoreSource:
    """Delegates to a VariableStore, creating entries on first request."""

    store: VariableStore


BackingSource: TypeAlias = (
    SafetensorsSource | NpzSource | TensorMapSource | ZerosSource | StoreSource
)
