"""
resolver_test provides tests for declarative resolver configs.
"""
from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import numpy as np
import torch
from pydantic import ValidationError
from safetensors.torch import save_file

from varbank.config.resolver import (
    NpzSourceConfig,
    ResolverConfig,
    SafetensorsSourceConfig,
    ZerosSourceConfig,
)
from varbank.device import Device
from varbank.source import NpzSource, SafetensorsSource


class ResolverConfigTest(unittest.TestCase):
    """
    ResolverConfigTest covers parsing, validation and build().
    """
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_yaml_with_relative_paths(self) -> None:
        save_file({"enc.w": torch.ones(2, 2)}, str(self.root / "model.safetensors"))
        cfg_path = self.root / "resolver.yml"
        cfg_path.write_text(
            "dtype: bf16\n"
            "prefix: [enc]\n"
            "source:\n"
            "  type: safetensors\n"
            "  paths: [model.safetensors]\n"
        )
        cfg = ResolverConfig.from_path(cfg_path)
        self.assertIsInstance(cfg.source, SafetensorsSourceConfig)
        self.assertEqual(cfg.base_dir, str(self.root))
        with cfg.build() as vb:
            self.assertIsInstance(vb.source, SafetensorsSource)
            self.assertEqual(vb.prefix, ("enc",))
            self.assertEqual(vb.dtype, torch.bfloat16)
            self.assertEqual(vb.device, Device.cpu())
            self.assertTrue(torch.equal(vb.get((2, 2), "w"), torch.ones(2, 2, dtype=torch.bfloat16)))

    def test_json_npz(self) -> None:
        np.savez(self.root / "w.npz", w=np.zeros(3, dtype=np.float32))
        cfg_path = self.root / "resolver.json"
        cfg_path.write_text(json.dumps({"source": {"type": "npz", "path": "w.npz"}}))
        cfg = ResolverConfig.from_path(cfg_path)
        self.assertIsInstance(cfg.source, NpzSourceConfig)
        vb = cfg.build()
        self.assertIsInstance(vb.source, NpzSource)
        self.assertEqual(vb.dtype, torch.float32)
        vb.close()

    def test_zeros_defaults(self) -> None:
        cfg = ResolverConfig.model_validate({"source": {"type": "zeros"}})
        self.assertIsInstance(cfg.source, ZerosSourceConfig)
        vb = cfg.build()
        self.assertTrue(torch.equal(vb.get(3, "x"), torch.zeros(3)))

    def test_rejects_unknown_dtype(self) -> None:
        with self.assertRaises(ValidationError):
            ResolverConfig.model_validate({"source": {"type": "zeros"}, "dtype": "f7"})

    def test_rejects_unknown_device(self) -> None:
        with self.assertRaises(ValidationError):
            ResolverConfig.model_validate({"source": {"type": "zeros"}, "device": "meta"})

    def test_rejects_unknown_source_type(self) -> None:
        with self.assertRaises(ValidationError):
            ResolverConfig.model_validate({"source": {"type": "hdf5", "path": "x"}})

    def test_rejects_empty_paths(self) -> None:
        with self.assertRaises(ValidationError):
            ResolverConfig.model_validate({"source": {"type": "safetensors", "paths": []}})

    def test_rejects_unknown_suffix(self) -> None:
        path = self.root / "resolver.toml"
        path.write_text("")
        with self.assertRaises(ValueError):
            ResolverConfig.from_path(path)


if __name__ == "__main__":
    unittest.main()
