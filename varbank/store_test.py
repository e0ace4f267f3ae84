"""
store_test provides tests for VariableStore create-or-fetch and persistence.
"""
from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import torch
from safetensors.torch import load_file, save_file

from varbank.device import Device
from varbank.errors import ShapeMismatchError, TensorNotFoundError, VariableError
from varbank.init import ONES, ZEROS, ConstInit, RandnInit
from varbank.store import VariableStore


CPU = Device.cpu()


class StoreGetTest(unittest.TestCase):
    """
    StoreGetTest covers creation, identity and shape checks.
    """
    def test_create_then_fetch(self) -> None:
        store = VariableStore()
        first = store.get((2, 3), "w", ZEROS, torch.float32, CPU)
        self.assertEqual(tuple(first.shape), (2, 3))
        self.assertTrue(torch.equal(first.detach(), torch.zeros(2, 3)))
        self.assertEqual(len(store), 1)

        again = store.get((2, 3), "w", ONES, torch.float64, CPU)
        self.assertIs(again, first)
        self.assertEqual(again.dtype, torch.float32)
        self.assertTrue(torch.equal(again.detach(), torch.zeros(2, 3)))

    def test_shape_mismatch_leaves_store_untouched(self) -> None:
        store = VariableStore()
        store.get((2, 3), "w", ConstInit(value=0.5), torch.float32, CPU)
        with self.assertRaises(ShapeMismatchError) as ctx:
            store.get((3, 2), "w", ZEROS, torch.float32, CPU)
        self.assertEqual(ctx.exception.path, "w")
        self.assertEqual(store.names(), ["w"])
        var = store.all_vars()[0]
        self.assertEqual(var.shape, (2, 3))
        self.assertTrue(torch.all(var.as_tensor() == 0.5))

    def test_names_keep_creation_order(self) -> None:
        store = VariableStore()
        for name in ("b", "a", "c"):
            store.get(1, name, ZEROS, torch.float32, CPU)
        self.assertEqual(store.names(), ["b", "a", "c"])
        self.assertIn("a", store)
        self.assertNotIn("d", store)

    def test_created_values_are_trainable(self) -> None:
        store = VariableStore()
        t = store.get(4, "w", RandnInit(), torch.float32, CPU)
        self.assertTrue(t.requires_grad)
        (t * 2).sum().backward()
        self.assertTrue(torch.equal(t.grad, torch.full((4,), 2.0)))


class StorePersistenceTest(unittest.TestCase):
    """
    StorePersistenceTest covers save/load through safetensors files.
    """
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_save_then_load_restores_values(self) -> None:
        store = VariableStore()
        w = store.get((3, 4), "enc.w", RandnInit(), torch.float32, CPU)
        ids = store.get(5, "enc.ids", ZEROS, torch.int64, CPU)
        saved_w = w.detach().clone()
        path = self.root / "vars.safetensors"
        store.save(path)

        on_disk = load_file(str(path))
        self.assertEqual(sorted(on_disk), ["enc.ids", "enc.w"])
        self.assertTrue(torch.equal(on_disk["enc.w"], saved_w))

        with torch.no_grad():
            w.fill_(7.0)
        store.load(path)
        self.assertTrue(torch.equal(w.detach(), saved_w))
        self.assertTrue(torch.equal(ids, torch.zeros(5, dtype=torch.int64)))

    def test_load_ignores_unregistered_entries(self) -> None:
        path = self.root / "extra.safetensors"
        save_file({"w": torch.ones(2), "other": torch.ones(9)}, str(path))
        store = VariableStore()
        w = store.get(2, "w", ZEROS, torch.float32, CPU)
        store.load(path)
        self.assertTrue(torch.equal(w.detach(), torch.ones(2)))
        self.assertEqual(store.names(), ["w"])

    def test_load_is_not_transactional(self) -> None:
        path = self.root / "partial.safetensors"
        save_file({"first": torch.ones(2)}, str(path))
        store = VariableStore()
        first = store.get(2, "first", ZEROS, torch.float32, CPU)
        second = store.get(2, "second", ZEROS, torch.float32, CPU)
        with self.assertRaises(TensorNotFoundError) as ctx:
            store.load(path)
        self.assertEqual(ctx.exception.path, "second")
        self.assertTrue(torch.equal(first.detach(), torch.ones(2)))
        self.assertTrue(torch.equal(second.detach(), torch.zeros(2)))

    def test_load_shape_mismatch_is_wrapped(self) -> None:
        path = self.root / "bad.safetensors"
        save_file({"w": torch.ones(3)}, str(path))
        store = VariableStore()
        store.get(2, "w", ZEROS, torch.float32, CPU)
        with self.assertRaises(VariableError) as ctx:
            store.load(path)
        self.assertIn("error setting w", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, ShapeMismatchError)

    def test_load_missing_file(self) -> None:
        store = VariableStore()
        with self.assertRaises(FileNotFoundError):
            store.load(self.root / "nope.safetensors")


if __name__ == "__main__":
    unittest.main()
