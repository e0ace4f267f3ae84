"""
variable_test provides tests for in-place variable updates.
"""
from __future__ import annotations

import unittest

import torch

from varbank.device import Device
from varbank.errors import DTypeMismatchError, ShapeMismatchError
from varbank.variable import Variable


class VariableTest(unittest.TestCase):
    """
    VariableTest covers set() and the trainable flag.
    """
    def test_float_values_are_trainable(self) -> None:
        var = Variable("w", torch.zeros(2, 3))
        self.assertTrue(var.as_tensor().requires_grad)
        self.assertTrue(var.as_tensor().is_leaf)

    def test_integer_values_are_not_trainable(self) -> None:
        var = Variable("ids", torch.zeros(4, dtype=torch.int64))
        self.assertFalse(var.as_tensor().requires_grad)

    def test_set_updates_in_place(self) -> None:
        var = Variable("w", torch.zeros(2, 2))
        handle = var.as_tensor()
        var.set(torch.ones(2, 2))
        self.assertIs(var.as_tensor(), handle)
        self.assertTrue(torch.equal(handle.detach(), torch.ones(2, 2)))

    def test_set_shape_mismatch(self) -> None:
        var = Variable("w", torch.zeros(2, 2))
        with self.assertRaises(ShapeMismatchError) as ctx:
            var.set(torch.ones(3, 2))
        self.assertEqual(ctx.exception.expected, (2, 2))
        self.assertEqual(ctx.exception.got, (3, 2))
        self.assertTrue(torch.equal(var.as_tensor().detach(), torch.zeros(2, 2)))

    def test_set_dtype_mismatch(self) -> None:
        var = Variable("w", torch.zeros(2))
        with self.assertRaises(DTypeMismatchError):
            var.set(torch.ones(2, dtype=torch.float64))

    def test_metadata(self) -> None:
        var = Variable("a.b", torch.zeros(5, dtype=torch.float16))
        self.assertEqual(var.shape, (5,))
        self.assertEqual(var.dtype, torch.float16)
        self.assertEqual(var.device, Device.cpu())
        self.assertIn("a.b", repr(var))


if __name__ == "__main__":
    unittest.main()
