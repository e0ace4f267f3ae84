"""
builder provides the Resolver (variable builder) and its sharded read path.
"""
from __future__ import annotations

from varbank.builder.resolver import Resolver
from varbank.builder.shard import ShardedSliceExtractor

__all__ = ["Resolver", "ShardedSliceExtractor"]
