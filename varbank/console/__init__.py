"""Rich, structured console output for varbank.

Usage:
    from varbank.console import logger

    logger.info("Opening checkpoint...")
    logger.success("Loaded 42 variables")
    logger.path("/models/llama.safetensors", "file")
    logger.tensors([("w", (4, 4), "torch.float32", "cpu")], title="Variables")
"""
from varbank.console.logger import Logger, get_logger

# Module-level singleton for convenient import
logger = get_logger()

__all__ = ["Logger", "get_logger", "logger"]
