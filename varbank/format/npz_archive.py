"""
npz_archive provides name-indexed access to numpy .npz archives.
"""
from __future__ import annotations

import threading
import zipfile
from pathlib import Path
from types import TracebackType

import numpy as np

from varbank.errors import FormatError


class NpzArchive:
    """
    NpzArchive reads members of an .npz file on demand.

    Members are decompressed lazily by numpy; reads are serialized because
    the underlying zip handle is shared.
    """
    def __init__(self, path: str | Path) -> None:
        self.path: Path = Path(path)
        try:
            npz = np.load(self.path, allow_pickle=False)
        except (zipfile.BadZipFile, ValueError) as e:
            raise FormatError(f"{self.path}: not a valid npz archive") from e
        if not isinstance(npz, np.lib.npyio.NpzFile):
            raise FormatError(f"{self.path}: expected an npz archive, got a single array")
        self._npz = npz
        self._names = frozenset(npz.files)
        self._lock = threading.Lock()

    def names(self) -> list[str]:
        return sorted(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def get(self, name: str) -> np.ndarray | None:
        if name not in self._names:
            return None
        with self._lock:
            try:
                return self._npz[name]
            except ValueError as e:
                # Object arrays need pickle, which we never allow.
                raise FormatError(f"{self.path}: cannot read {name}: {e}") from e

    def close(self) -> None:
        self._npz.close()

    def __enter__(self) -> "NpzArchive":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
