"""
Learning rate schedulers.

Implements epoch-indexed scheduling strategies:
- Cosine annealing with warmup
- Step decay
- Exponential decay

Any object with ``get_lr(epoch) -> float`` can be passed to Network.train.
"""

from typing import Protocol

from .cosine import CosineScheduler, CosineSchedulerConfig
from .decay import StepDecayScheduler, ExponentialDecayScheduler


class LRScheduler(Protocol):
    def get_lr(self, epoch: int) -> float:
        ...


__all__ = [
    "LRScheduler",
    "CosineScheduler",
    "CosineSchedulerConfig",
    "StepDecayScheduler",
    "ExponentialDecayScheduler",
]
