"""
Gradient accumulation and global-norm clipping for Network.train.

Gradients are lists of Tensors in the order ``Network.parameters()`` returns
them.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ...errors import DimensionMismatchError, InvalidConfigurationError
from ..tensor import Tensor


@dataclass
class GradientConfig:
    """How mini-batch gradients become optimizer updates."""
    accumulation_steps: int = 1
    max_grad_norm: Optional[float] = None  # no clipping when None

    def __post_init__(self) -> None:
        if self.accumulation_steps < 1:
            raise InvalidConfigurationError("accumulation_steps must be >= 1")
        if self.max_grad_norm is not None and self.max_grad_norm <= 0:
            raise InvalidConfigurationError("max_grad_norm must be positive")


def global_norm(grads: List[Tensor]) -> float:
    """L2 norm over every element of every gradient."""
    return float(np.sqrt(sum(float(np.sum(g.data * g.data)) for g in grads)))


def clip_by_global_norm(grads: List[Tensor], max_norm: float) -> Tuple[List[Tensor], float]:
    """
    Rescale all gradients together when their joint L2 norm exceeds max_norm.

    Returns the (possibly rescaled) gradients and the norm measured before
    rescaling.
    """
    norm = global_norm(grads)
    factor = max_norm / (norm + 1e-6)
    if factor >= 1.0:
        return grads, norm
    return [g * factor for g in grads], norm


class GradientAccumulator:
    """
    Sums gradients over several mini-batches and releases their mean.

    Typical loop:
        accumulator = GradientAccumulator(config)
        for batch in batches:
            grads = compute_gradients(batch)
            ready = accumulator.accumulate(grads)
            if ready is not None:
                params = optimizer.step(params, ready)
        leftover = accumulator.flush()
    """

    def __init__(self, config: GradientConfig = None):
        self.config = config or GradientConfig()
        self._accumulated: Optional[List[Tensor]] = None
        self._step_count = 0

    @property
    def pending(self) -> int:
        """Batches summed since the last release."""
        return self._step_count

    def accumulate(self, grads: List[Tensor]) -> Optional[List[Tensor]]:
        """
        Add one batch of gradients.

        Returns the averaged, clipped gradients once accumulation_steps
        batches are in, otherwise None.
        """
        if self._accumulated is None:
            self._accumulated = [g.copy() for g in grads]
        else:
            if len(grads) != len(self._accumulated):
                raise DimensionMismatchError("Gradient list length changed between batches")
            self._accumulated = [a + g for a, g in zip(self._accumulated, grads)]

        self._step_count += 1
        if self._step_count >= self.config.accumulation_steps:
            return self.flush()
        return None

    def flush(self) -> Optional[List[Tensor]]:
        """Release a partial accumulation, e.g. at the end of an epoch."""
        if self._accumulated is None:
            return None
        scaled = [g * (1.0 / self._step_count) for g in self._accumulated]
        self._accumulated = None
        self._step_count = 0
        if self.config.max_grad_norm is not None:
            scaled, _ = clip_by_global_norm(scaled, self.config.max_grad_norm)
        return scaled
