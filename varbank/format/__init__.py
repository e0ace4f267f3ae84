"""Readers for the on-disk tensor containers.

safetensors files give byte-range access to each tensor (needed for sharded
loads); npz archives only give whole-array access by name.
"""
from __future__ import annotations

from varbank.format.npz_archive import NpzArchive
from varbank.format.safetensors_file import SafetensorsFile, TensorView

__all__ = ["NpzArchive", "SafetensorsFile", "TensorView"]
