"""Concurrent registry of named, mutable tensors.

A VariableStore maps dotted paths (``encoder.layer0.weight``) to Variables.
Entries are only ever added through create-or-fetch (`get`), never removed.
Sharing a store means sharing the Python object: every Resolver built from it
sees, and creates, the same variables.

One lock guards the whole map and is held for the full duration of every
operation, file I/O in save/load included. Those calls happen at start-up
and checkpoint boundaries, not per step.
"""
from __future__ import annotations

import threading
from pathlib import Path

import torch
from safetensors.torch import save_file

from varbank.console import logger
from varbank.device import Device
from varbank.errors import (
    DeviceMismatchError,
    DTypeMismatchError,
    ShapeMismatchError,
    TensorNotFoundError,
    VariableError,
)
from varbank.format import SafetensorsFile
from varbank.init import Init
from varbank.shape import ShapeLike, as_shape
from varbank.variable import Variable


class VariableStore:
    """Thread-safe mapping from path to Variable with bulk save/load."""

    def __init__(self) -> None:
        self._data: dict[str, Variable] = {}
        self._lock = threading.Lock()

    def get(
        self,
        shape: ShapeLike,
        path: str,
        init: Init,
        dtype: torch.dtype,
        device: Device,
    ) -> torch.Tensor:
        """Return the tensor at path, creating it with init if absent.

        An existing entry must have exactly the requested shape; a mismatch
        raises ShapeMismatchError and leaves the store untouched. dtype and
        device only apply on creation.
        """
        dims = as_shape(shape)
        with self._lock:
            existing = self._data.get(path)
            if existing is not None:
                if existing.shape != dims:
                    raise ShapeMismatchError(path, dims, existing.shape)
                return existing.as_tensor()
            var = Variable(path, init.tensor(dims, dtype, device))
            self._data[path] = var
            return var.as_tensor()

    def all_vars(self) -> list[Variable]:
        """Snapshot of the registered variables in creation order."""
        with self._lock:
            return list(self._data.values())

    def names(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._data

    def save(self, path: str | Path) -> None:
        """Write every variable to a single safetensors file."""
        path = Path(path)
        with self._lock:
            tensors = {
                name: var.as_tensor().detach().cpu().contiguous()
                for name, var in self._data.items()
            }
            save_file(tensors, str(path))
        logger.success(f"Saved {len(tensors)} variables")
        logger.path(str(path), "file")

    def load(self, path: str | Path) -> None:
        """Overwrite every registered variable with the value stored in path.

        Values are moved to each variable's device before being set. Entries
        in the file that are not registered are ignored.

        This is not transactional: the first variable missing from the file
        raises TensorNotFoundError, and variables already overwritten by then
        keep their new values.
        """
        path = Path(path)
        with self._lock, SafetensorsFile(path) as st:
            for name, var in self._data.items():
                view = st.get(name)
                if view is None:
                    raise TensorNotFoundError(name)
                value = view.load(var.device)
                try:
                    var.set(value)
                except (ShapeMismatchError, DTypeMismatchError, DeviceMismatchError) as e:
                    raise VariableError(
                        f"error setting {name} using data from {path}: {e}"
                    ) from e
            count = len(self._data)
        logger.success(f"Loaded {count} variables")
        logger.path(str(path), "file")
