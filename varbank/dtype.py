"""
dtype maps textual dtype names onto torch dtypes.
"""
from __future__ import annotations

import torch


# Tags used in safetensors headers.
SAFETENSORS_DTYPES: dict[str, torch.dtype] = {
    "BOOL": torch.bool,
    "U8": torch.uint8,
    "I8": torch.int8,
    "I16": torch.int16,
    "I32": torch.int32,
    "I64": torch.int64,
    "F16": torch.float16,
    "BF16": torch.bfloat16,
    "F32": torch.float32,
    "F64": torch.float64,
}

# Names accepted in configuration files.
DTYPE_ALIASES: dict[str, torch.dtype] = {
    "bool": torch.bool,
    "u8": torch.uint8,
    "uint8": torch.uint8,
    "i8": torch.int8,
    "int8": torch.int8,
    "i16": torch.int16,
    "int16": torch.int16,
    "i32": torch.int32,
    "int32": torch.int32,
    "i64": torch.int64,
    "int64": torch.int64,
    "f16": torch.float16,
    "fp16": torch.float16,
    "float16": torch.float16,
    "half": torch.float16,
    "bf16": torch.bfloat16,
    "bfloat16": torch.bfloat16,
    "f32": torch.float32,
    "fp32": torch.float32,
    "float32": torch.float32,
    "float": torch.float32,
    "f64": torch.float64,
    "fp64": torch.float64,
    "float64": torch.float64,
    "double": torch.float64,
}


def parse_dtype(value: str | torch.dtype) -> torch.dtype:
    """
    parse_dtype resolves a dtype name (or passes a torch dtype through).
    """
    if isinstance(value, torch.dtype):
        return value
    key = value.strip().lower().removeprefix("torch.")
    if key not in DTYPE_ALIASES:
        raise ValueError(f"Unknown dtype '{value}'")
    return DTYPE_ALIASES[key]


def from_safetensors_tag(tag: str) -> torch.dtype:
    """
    from_safetensors_tag resolves a safetensors header dtype tag.
    """
    if tag not in SAFETENSORS_DTYPES:
        raise ValueError(f"Unsupported safetensors dtype '{tag}'")
    return SAFETENSORS_DTYPES[tag]


def itemsize(dtype: torch.dtype) -> int:
    """
    itemsize returns the width of one element in bytes.
    """
    return torch.empty((), dtype=dtype).element_size()
