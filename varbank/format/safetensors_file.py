"""Memory-mapped, byte-range-addressable views over safetensors files.

A safetensors file is an 8-byte little-endian header length, a JSON header
mapping each tensor name to its dtype, shape and data offsets, then the raw
tensor bytes. Each tensor is stored densely in row-major order, which is what
makes partial reads (whole rows, or a column band of every row) possible
without touching the rest of the file.

Writing goes through `safetensors.torch.save_file`; this module only reads.
"""
from __future__ import annotations

import json
import mmap
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

import torch

from varbank.device import Device
from varbank.dtype import from_safetensors_tag, itemsize
from varbank.errors import FormatError, TensorNotFoundError
from varbank.shape import Shape, numel


HEADER_LENGTH_BYTES = 8
METADATA_KEY = "__metadata__"


@dataclass(frozen=True)
class TensorView:
    """One named tensor inside a mapped file, addressed by byte offsets."""

    name: str
    dtype: torch.dtype
    shape: Shape
    begin: int
    end: int
    source: "SafetensorsFile" = field(repr=False, compare=False)

    @property
    def nbytes(self) -> int:
        return self.end - self.begin

    @property
    def itemsize(self) -> int:
        return itemsize(self.dtype)

    def read(self, ranges: Iterable[tuple[int, int]] | None = None) -> bytearray:
        """Copy out byte ranges (relative to this tensor) in the given order.

        With no ranges the whole tensor is read.
        """
        if ranges is None:
            ranges = ((0, self.nbytes),)
        absolute: list[tuple[int, int]] = []
        for start, stop in ranges:
            if not 0 <= start <= stop <= self.nbytes:
                raise ValueError(
                    f"byte range {start}:{stop} outside {self.name} ({self.nbytes} bytes)"
                )
            absolute.append((self.begin + start, self.begin + stop))
        return self.source.read_ranges(absolute)

    def load(self, device: Device) -> torch.Tensor:
        """Materialize the full tensor on device."""
        storage = device.storage_owned(self.read(), self.dtype)
        return storage.tensor.reshape(self.shape)


class SafetensorsFile:
    """
    SafetensorsFile maps a file read-only and indexes its tensors by name.

    The header is parsed once; tensor bytes are only touched on read.
    """
    def __init__(self, path: str | Path) -> None:
        self.path: Path = Path(path)
        with self.path.open("rb") as fh:
            try:
                self._mmap: mmap.mmap | None = mmap.mmap(
                    fh.fileno(), 0, access=mmap.ACCESS_READ
                )
            except ValueError as e:
                raise FormatError(f"{self.path}: empty or unmappable file") from e
        try:
            self.metadata, self._views = self._parse_header()
        except FormatError:
            self.close()
            raise

    def _parse_header(self) -> tuple[dict[str, str], dict[str, TensorView]]:
        mm = self._mapped()
        size = len(mm)
        if size < HEADER_LENGTH_BYTES:
            raise FormatError(f"{self.path}: truncated safetensors header")
        header_len = int.from_bytes(mm[:HEADER_LENGTH_BYTES], "little")
        data_start = HEADER_LENGTH_BYTES + header_len
        if data_start > size:
            raise FormatError(f"{self.path}: incomplete safetensors header")
        try:
            header = json.loads(mm[HEADER_LENGTH_BYTES:data_start].decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FormatError(f"{self.path}: unable to parse safetensors header") from e
        if not isinstance(header, dict):
            raise FormatError(f"{self.path}: safetensors header must be a JSON object")

        metadata = header.pop(METADATA_KEY, None) or {}
        views: dict[str, TensorView] = {}
        for name, entry in header.items():
            views[name] = self._make_view(name, entry, data_start, size)
        return dict(metadata), views

    def _make_view(
        self, name: str, entry: object, data_start: int, size: int
    ) -> TensorView:
        if not isinstance(entry, dict) or not {"dtype", "shape", "data_offsets"} <= entry.keys():
            raise FormatError(f"{self.path}: malformed header entry for {name}")
        try:
            dtype = from_safetensors_tag(entry["dtype"])
        except ValueError as e:
            raise FormatError(f"{self.path}: {name}: {e}") from e
        shape = tuple(int(d) for d in entry["shape"])
        begin, end = (int(o) for o in entry["data_offsets"])
        if not 0 <= begin <= end or data_start + end > size:
            raise FormatError(
                f"{self.path}: data offsets {begin}:{end} for {name} are out of bounds"
            )
        # Row-major density: byte length must match shape and dtype exactly.
        expected = numel(shape) * itemsize(dtype)
        if end - begin != expected:
            raise FormatError(
                f"{self.path}: {name} holds {end - begin} bytes, expected {expected} "
                f"for a dense row-major {entry['dtype']}{list(shape)}"
            )
        return TensorView(
            name=name,
            dtype=dtype,
            shape=shape,
            begin=data_start + begin,
            end=data_start + end,
            source=self,
        )

    def _mapped(self) -> mmap.mmap:
        if self._mmap is None:
            raise ValueError(f"{self.path} is closed")
        return self._mmap

    def read_ranges(self, ranges: Iterable[tuple[int, int]]) -> bytearray:
        """Concatenate absolute byte ranges of the file into one buffer."""
        with memoryview(self._mapped()) as mv:
            return bytearray().join(mv[start:stop] for start, stop in ranges)

    def names(self) -> list[str]:
        return list(self._views)

    def __iter__(self) -> Iterator[str]:
        return iter(self._views)

    def __len__(self) -> int:
        return len(self._views)

    def __contains__(self, name: object) -> bool:
        return name in self._views

    def get(self, name: str) -> TensorView | None:
        return self._views.get(name)

    def view(self, name: str) -> TensorView:
        found = self._views.get(name)
        if found is None:
            raise TensorNotFoundError(name)
        return found

    def load(self, name: str, device: Device) -> torch.Tensor:
        return self.view(name).load(device)

    def close(self) -> None:
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None

    def __enter__(self) -> "SafetensorsFile":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SafetensorsFile({str(self.path)!r}, tensors={len(self._views)})"
