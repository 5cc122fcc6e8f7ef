"""
Training utilities and helpers.

Contains gradient accumulation and clipping.
"""

from .gradient_utils import (
    GradientAccumulator,
    GradientConfig,
    clip_by_global_norm,
    global_norm,
)

__all__ = [
    "GradientAccumulator",
    "GradientConfig",
    "clip_by_global_norm",
    "global_norm",
]
