"""Checkpoint detection: turning a file on disk into a backing source.

Checkpoints come in different formats (PyTorch .pt/.bin pickles, single
safetensors files, sharded safetensors with an index, numpy .npz). This
module looks at the path and opens the right source for it, so callers only
have to say which file to use.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

import torch
from torch import Tensor

from varbank.console import logger
from varbank.errors import FormatError
from varbank.source import BackingSource, NpzSource, SafetensorsSource, TensorMapSource


INDEX_SUFFIX = ".index.json"
NESTED_STATE_KEYS = ("model_state_dict", "state_dict", "model")


def _get_torch_version() -> tuple[int, int]:
    """Parse PyTorch version into (major, minor) tuple."""
    version_str = torch.__version__.split("+")[0]
    parts = version_str.split(".")
    return int(parts[0]), int(parts[1])


def _safe_torch_load(path: Path) -> object:
    """Load a pickled checkpoint safely.

    Uses weights_only=True when available (PyTorch ≥2.4) so a malicious
    checkpoint cannot run arbitrary code while unpickling.
    """
    major, minor = _get_torch_version()
    if (major, minor) >= (2, 4):
        return torch.load(path, map_location="cpu", weights_only=True)
    return torch.load(path, map_location="cpu")


def read_index(index_path: Path) -> dict[str, str]:
    """Read the weight_map of a sharded checkpoint index."""
    data = json.loads(index_path.read_text(encoding="utf-8"))
    weight_map = data.get("weight_map") if isinstance(data, dict) else None
    if not isinstance(weight_map, dict):
        raise FormatError(f"Invalid index file {index_path}: missing weight_map")
    return {str(k): str(v) for k, v in weight_map.items()}


def extract_state_dict(payload: object, path: Path) -> dict[str, Tensor]:
    """Pull the name→tensor mapping out of a raw torch checkpoint payload.

    Accepts a bare state_dict or a training checkpoint that nests it under
    one of the usual keys. Non-tensor entries are dropped.
    """
    if isinstance(payload, Mapping):
        for key in NESTED_STATE_KEYS:
            nested = payload.get(key)
            if isinstance(nested, Mapping):
                payload = nested
                break
        tensors = {
            str(k): v for k, v in payload.items() if isinstance(v, Tensor)
        }
        if tensors:
            return tensors
    raise FormatError(
        f"Invalid checkpoint format at {path}: expected a state_dict mapping "
        "or a mapping containing model_state_dict"
    )


class CheckpointLoader:
    """Opens a backing source for a checkpoint, auto-detecting its format.

    Supports:
    - Single-file safetensors (.safetensors), mapped and read lazily
    - Sharded checkpoints with index files (.index.json)
    - numpy archives (.npz)
    - PyTorch pickles (.pt, .bin, ...), loaded into memory
    """

    def source(self, path: Path) -> BackingSource:
        """Open path as the matching source variant."""
        path = Path(path)
        if path.name.endswith(INDEX_SUFFIX):
            return self.sharded(path)
        match path.suffix:
            case ".safetensors":
                return SafetensorsSource.open([path])
            case ".npz":
                return NpzSource.open(path)
            case _:
                return TensorMapSource(tensors=self.load_torch(path))

    def sharded(self, index_path: Path) -> BackingSource:
        """Open a sharded checkpoint from its index file.

        Safetensors shards are mapped and routed by name; pickled shards are
        loaded and merged into one in-memory table.
        """
        weight_map = read_index(index_path)
        shards = sorted(set(weight_map.values()))
        for shard in shards:
            if shard.endswith(INDEX_SUFFIX):
                raise FormatError(f"Shard {shard} is an index file, expected tensor file")

        paths = [index_path.parent / shard for shard in shards]
        logger.info(f"Opening {len(paths)} checkpoint shard(s)")
        logger.path(str(index_path), "index")

        if all(p.suffix == ".safetensors" for p in paths):
            source = SafetensorsSource.open(paths)
            missing = sorted(set(weight_map) - set(source.routing))
            if missing:
                source.close()
                raise FormatError(
                    f"Index {index_path} lists tensors missing from its shards: {missing[:5]}"
                )
            return source

        out: dict[str, Tensor] = {}
        for shard_path in paths:
            for key, value in self.load_torch(shard_path).items():
                if key in out:
                    raise FormatError(f"Duplicate key in shards: {key}")
                out[key] = value
        return TensorMapSource(tensors=out)

    def load_torch(self, path: Path) -> dict[str, Tensor]:
        """Load a pickled torch checkpoint into a name→tensor dict."""
        return extract_state_dict(_safe_torch_load(path), path)
