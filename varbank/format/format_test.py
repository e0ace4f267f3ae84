"""
format_test provides tests for the safetensors and npz readers.
"""
from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import numpy as np
import torch
from safetensors.torch import save_file

from varbank.device import Device
from varbank.errors import FormatError, TensorNotFoundError
from varbank.format import NpzArchive, SafetensorsFile


class SafetensorsFileTest(unittest.TestCase):
    """
    SafetensorsFileTest covers header parsing and byte-range reads.
    """
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.weight = torch.arange(24, dtype=torch.float32).reshape(6, 4)
        self.bias = torch.tensor([1, 2, 3], dtype=torch.int64)
        self.half = torch.randn(2, 5).to(torch.bfloat16)
        self.path = self.root / "model.safetensors"
        save_file(
            {"layer.weight": self.weight, "layer.bias": self.bias, "half": self.half},
            str(self.path),
            metadata={"format": "pt"},
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_header_is_indexed(self) -> None:
        with SafetensorsFile(self.path) as f:
            self.assertEqual(sorted(f.names()), ["half", "layer.bias", "layer.weight"])
            self.assertIn("layer.weight", f)
            self.assertEqual(len(f), 3)
            self.assertEqual(f.metadata, {"format": "pt"})
            view = f.view("layer.weight")
            self.assertEqual(view.shape, (6, 4))
            self.assertEqual(view.dtype, torch.float32)
            self.assertEqual(view.nbytes, 6 * 4 * 4)

    def test_full_load_matches(self) -> None:
        with SafetensorsFile(self.path) as f:
            cpu = Device.cpu()
            self.assertTrue(torch.equal(f.load("layer.weight", cpu), self.weight))
            self.assertTrue(torch.equal(f.load("layer.bias", cpu), self.bias))
            self.assertTrue(torch.equal(f.load("half", cpu), self.half))

    def test_partial_read(self) -> None:
        with SafetensorsFile(self.path) as f:
            view = f.view("layer.weight")
            row = view.itemsize * 4
            raw = view.read([(2 * row, 3 * row), (0, row)])
            got = torch.frombuffer(raw, dtype=torch.float32).reshape(2, 4)
            self.assertTrue(torch.equal(got, self.weight[[2, 0]]))

    def test_read_out_of_bounds(self) -> None:
        with SafetensorsFile(self.path) as f:
            view = f.view("layer.bias")
            with self.assertRaises(ValueError):
                view.read([(0, view.nbytes + 1)])

    def test_missing_name(self) -> None:
        with SafetensorsFile(self.path) as f:
            self.assertIsNone(f.get("nope"))
            with self.assertRaises(TensorNotFoundError):
                f.view("nope")

    def test_closed_file_refuses_reads(self) -> None:
        f = SafetensorsFile(self.path)
        view = f.view("layer.bias")
        f.close()
        with self.assertRaises(ValueError):
            view.read()

    def test_empty_file(self) -> None:
        empty = self.root / "empty.safetensors"
        empty.write_bytes(b"")
        with self.assertRaises(FormatError):
            SafetensorsFile(empty)

    def test_truncated_header(self) -> None:
        bad = self.root / "bad.safetensors"
        bad.write_bytes((1000).to_bytes(8, "little") + b"{}")
        with self.assertRaises(FormatError):
            SafetensorsFile(bad)

    def test_rejects_non_dense_entry(self) -> None:
        header = json.dumps(
            {"w": {"dtype": "F32", "shape": [2, 2], "data_offsets": [0, 12]}}
        ).encode("utf-8")
        bad = self.root / "sparse.safetensors"
        bad.write_bytes(len(header).to_bytes(8, "little") + header + bytes(12))
        with self.assertRaises(FormatError):
            SafetensorsFile(bad)

    def test_rejects_unknown_dtype(self) -> None:
        header = json.dumps(
            {"w": {"dtype": "F8_E4M3X", "shape": [1], "data_offsets": [0, 1]}}
        ).encode("utf-8")
        bad = self.root / "dtype.safetensors"
        bad.write_bytes(len(header).to_bytes(8, "little") + header + bytes(1))
        with self.assertRaises(FormatError):
            SafetensorsFile(bad)


class NpzArchiveTest(unittest.TestCase):
    """
    NpzArchiveTest covers name lookup in npz archives.
    """
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "weights.npz"
        np.savez(
            self.path,
            **{"enc.weight": np.ones((2, 3), dtype=np.float32), "enc.bias": np.zeros(3)},
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_lookup(self) -> None:
        with NpzArchive(self.path) as npz:
            self.assertEqual(npz.names(), ["enc.bias", "enc.weight"])
            self.assertIn("enc.weight", npz)
            arr = npz.get("enc.weight")
            assert arr is not None
            self.assertEqual(arr.shape, (2, 3))
            self.assertIsNone(npz.get("missing"))

    def test_rejects_non_archive(self) -> None:
        bogus = Path(self._tmp.name) / "bogus.npz"
        bogus.write_bytes(b"not a zip at all")
        with self.assertRaises(FormatError):
            NpzArchive(bogus)


if __name__ == "__main__":
    unittest.main()
