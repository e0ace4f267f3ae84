"""Declarative resolver setup.

A resolver config names the source (which files, which format), the default
dtype and the target device:

    dtype: bf16
    device: cuda:0
    source:
      type: safetensors
      paths: [model-00001.safetensors, model-00002.safetensors]

Relative paths are resolved against the directory of the config file when
loaded with `from_path`.
"""
from __future__ import annotations

import enum
import json
from pathlib import Path
from typing import Annotated, Literal, TypeAlias

import yaml
from pydantic import Field, field_validator

from varbank.builder.resolver import Resolver
from varbank.config import Config, NonEmptyStr
from varbank.device import Device
from varbank.dtype import parse_dtype
from varbank.load.checkpoint import CheckpointLoader
from varbank.source import BackingSource, NpzSource, SafetensorsSource, ZerosSource


class SourceType(str, enum.Enum):
    """Discriminator for source configs."""

    SAFETENSORS = "safetensors"
    SAFETENSORS_INDEX = "safetensors_index"
    NPZ = "npz"
    CHECKPOINT = "checkpoint"
    ZEROS = "zeros"


class SafetensorsSourceConfig(Config):
    """One or more safetensors files routed by tensor name."""

    type: Literal[SourceType.SAFETENSORS] = SourceType.SAFETENSORS
    paths: list[NonEmptyStr] = Field(min_length=1)

    def open(self, base: Path) -> BackingSource:
        return SafetensorsSource.open([base / p for p in self.paths])


class SafetensorsIndexSourceConfig(Config):
    """A sharded checkpoint described by its *.index.json file."""

    type: Literal[SourceType.SAFETENSORS_INDEX] = SourceType.SAFETENSORS_INDEX
    index: NonEmptyStr

    def open(self, base: Path) -> BackingSource:
        return CheckpointLoader().sharded(base / self.index)


class NpzSourceConfig(Config):
    """A numpy .npz archive."""

    type: Literal[SourceType.NPZ] = SourceType.NPZ
    path: NonEmptyStr

    def open(self, base: Path) -> BackingSource:
        return NpzSource.open(base / self.path)


class CheckpointSourceConfig(Config):
    """Any checkpoint file; the format is detected from its name."""

    type: Literal[SourceType.CHECKPOINT] = SourceType.CHECKPOINT
    path: NonEmptyStr

    def open(self, base: Path) -> BackingSource:
        return CheckpointLoader().source(base / self.path)


class ZerosSourceConfig(Config):
    """Zeros for every name; handy for shape checks and smoke tests."""

    type: Literal[SourceType.ZEROS] = SourceType.ZEROS

    def open(self, base: Path) -> BackingSource:
        return ZerosSource()


SourceConfig: TypeAlias = Annotated[
    SafetensorsSourceConfig
    | SafetensorsIndexSourceConfig
    | NpzSourceConfig
    | CheckpointSourceConfig
    | ZerosSourceConfig,
    Field(discriminator="type"),
]


class ResolverConfig(Config):
    """Everything needed to build a Resolver."""

    source: SourceConfig
    dtype: str = "f32"
    device: str = "cpu"
    prefix: list[NonEmptyStr] = Field(default_factory=list)
    base_dir: str = "."

    @field_validator("dtype")
    @classmethod
    def _known_dtype(cls, v: str) -> str:
        parse_dtype(v)
        return v

    @field_validator("device")
    @classmethod
    def _known_device(cls, v: str) -> str:
        Device.parse(v)
        return v

    @classmethod
    def from_path(cls, path: Path) -> "ResolverConfig":
        """Load and validate a config from a JSON or YAML file.

        Source paths are rebased onto the config file's directory.
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        match path.suffix.lower():
            case ".json":
                payload = json.loads(text)
            case ".yml" | ".yaml":
                payload = yaml.safe_load(text)
            case s:
                raise ValueError(f"Unsupported format '{s}'")

        if payload is None:
            raise ValueError("Resolver config payload is empty.")
        if not isinstance(payload, dict):
            raise ValueError(f"Resolver config must be a dict, got {type(payload)!r}")
        payload.setdefault("base_dir", str(path.parent))
        return cls.model_validate(payload)

    def build(self) -> Resolver:
        """Open the source and return a Resolver with the configured prefix."""
        source = self.source.open(Path(self.base_dir))
        resolver = Resolver(source, parse_dtype(self.dtype), Device.parse(self.device))
        for segment in self.prefix:
            resolver = resolver.push_prefix(segment)
        return resolver
