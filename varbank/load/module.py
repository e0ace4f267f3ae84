"""
module fills a torch.nn.Module's parameters and buffers from a Resolver.
"""
from __future__ import annotations

import torch
from torch import nn

from varbank.builder.resolver import Resolver
from varbank.console import logger


class ModuleLoader:
    """
    ModuleLoader copies resolved tensors into a module, name by name.

    Each parameter/buffer name (as reported by named_parameters and
    named_buffers) is looked up under the Resolver's prefix with the
    module's own shape, so any shape mismatch surfaces as the Resolver's
    ShapeMismatchError.
    """
    def __init__(self, resolver: Resolver) -> None:
        self.resolver = resolver

    def load(self, module: nn.Module, *, strict: bool = True) -> list[str]:
        """Copy every tensor in; return the names that were skipped.

        With strict=True a missing name raises TensorNotFoundError. With
        strict=False missing names are skipped and reported.
        """
        missing: list[str] = []
        loaded = 0
        targets = list(module.named_parameters()) + list(module.named_buffers())
        with torch.no_grad():
            for name, dst in targets:
                if not strict and not self.resolver.contains_tensor(name):
                    missing.append(name)
                    continue
                value = self.resolver.get(tuple(dst.shape), name)
                dst.copy_(value)
                loaded += 1
        logger.success(f"Loaded {loaded} tensors into {type(module).__name__}")
        if missing:
            logger.warning(f"Skipped {len(missing)} missing tensors: {missing[:5]}")
        return missing
