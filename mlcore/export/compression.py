"""
Weight compression: affine integer quantization and magnitude pruning.
"""

from typing import Any, Dict, Optional, Tuple
import copy
import logging

import numpy as np

from ..errors import InvalidConfigurationError
from .spec import ModelSpec

logger = logging.getLogger(__name__)


def quantize(weights: Any, bits: int = 8) -> Tuple[np.ndarray, float, int]:
    """
    Map float weights onto a signed integer grid.

    Args:
        weights: Float values (any shape; flattened)
        bits: Grid width, 2 to 8

    Returns:
        (int8 buffer, scale, zero_point) such that
        weight ~= scale * (q - zero_point)
    """
    if not 2 <= bits <= 8:
        raise InvalidConfigurationError(f"bits must be in [2, 8], got {bits}")
    values = np.asarray(weights, dtype=np.float64).reshape(-1)
    q_min, q_max = -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
    if values.size == 0:
        return np.zeros(0, dtype=np.int8), 1.0, 0

    # The grid always spans 0.0 so one-signed buffers keep a valid zero point
    low = min(float(values.min()), 0.0)
    high = max(float(values.max()), 0.0)
    if high == low:
        scale = 1.0
        zero_point = 0
    else:
        scale = (high - low) / (q_max - q_min)
        zero_point = int(np.clip(round(q_min - low / scale), q_min, q_max))

    quantized = np.clip(np.round(values / scale) + zero_point, q_min, q_max).astype(np.int8)
    return quantized, float(scale), zero_point


def dequantize(quantized: Any, scale: float, zero_point: int) -> np.ndarray:
    """Inverse of quantize: scale * (q - zero_point)."""
    q = np.asarray(quantized, dtype=np.int64)
    return scale * (q - zero_point).astype(np.float64)


def prune(weights: Any, threshold: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Zero every weight with magnitude below threshold.

    Returns:
        (pruned buffer, boolean keep-mask), both the shape of the input
    """
    if threshold < 0:
        raise InvalidConfigurationError("threshold must be >= 0")
    values = np.asarray(weights, dtype=np.float64)
    mask = np.abs(values) >= threshold
    return np.where(mask, values, 0.0), mask


def compression_stats(original: Any, compressed: Any) -> Dict[str, float]:
    """
    Byte sizes assuming 32-bit floats for the original buffer.

    Returns:
        Dict with original_size, compressed_size and ratio
    """
    original_size = int(np.asarray(original).size) * 4
    compressed_arr = np.asarray(compressed)
    compressed_size = int(compressed_arr.size) * compressed_arr.itemsize
    ratio = original_size / compressed_size if compressed_size else float("inf")
    return {
        "original_size": original_size,
        "compressed_size": compressed_size,
        "ratio": ratio,
    }


def compress_spec(
    spec: ModelSpec,
    bits: Optional[int] = 8,
    prune_threshold: Optional[float] = None,
) -> ModelSpec:
    """
    Compress every dense layer of a spec.

    Pruning (when a threshold is given) runs before quantization. Each dense
    layer keeps float weights (the dequantized values, so the ModelSpec still
    rebuilds into a network) and gains a ``compression`` entry with the
    integer buffer, scale, zero point and sparsity.
    """
    compressed = copy.deepcopy(spec)
    totals = {"original": 0, "compressed": 0}
    for layer in compressed.layers:
        if layer["type"] != "dense":
            continue
        weights = np.asarray(layer["weights"], dtype=np.float64)
        info: Dict[str, Any] = {}
        if prune_threshold is not None:
            weights, mask = prune(weights, prune_threshold)
            info["sparsity"] = float(1.0 - mask.mean())
        if bits is not None:
            q, scale, zero_point = quantize(weights, bits)
            info.update({"bits": bits, "scale": scale, "zero_point": zero_point, "quantized": q.tolist()})
            weights = dequantize(q, scale, zero_point)
            stats = compression_stats(layer["weights"], q)
            totals["original"] += stats["original_size"]
            totals["compressed"] += stats["compressed_size"]
        layer["weights"] = weights.tolist()
        layer["compression"] = info

    if totals["compressed"]:
        logger.info(
            f"Compressed {spec.metadata.name}: {totals['original']} -> {totals['compressed']} bytes "
            f"({totals['original'] / totals['compressed']:.1f}x)"
        )
    return compressed
