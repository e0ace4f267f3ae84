"""Checkpoint loading utilities.

Checkpoints come in different formats (PyTorch, safetensors, sharded, npz)
and end up either as a backing source for a Resolver or copied straight into
an nn.Module. Import the submodules directly: `varbank.load.checkpoint` and
`varbank.load.module`.
"""
from __future__ import annotations
