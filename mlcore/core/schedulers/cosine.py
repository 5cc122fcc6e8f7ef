"""
Cosine annealing learning rate scheduler with warmup.

Based on: https://arxiv.org/abs/1608.03983

Epoch-indexed: ``Network.train`` asks for a rate at the start of every
epoch and assigns it to the optimizer.
"""

import math
from dataclasses import dataclass

from ...errors import InvalidConfigurationError


@dataclass
class CosineSchedulerConfig:
    """Shape of the warmup and decay phases."""
    warmup_ratio: float = 0.0  # share of epochs spent ramping up
    min_lr_ratio: float = 0.0  # floor, relative to base_lr
    num_cycles: float = 0.5  # 0.5 = one half-period, base_lr down to the floor

    def __post_init__(self) -> None:
        if not 0 <= self.warmup_ratio < 1:
            raise InvalidConfigurationError("warmup_ratio must be in [0, 1)")
        if not 0 <= self.min_lr_ratio <= 1:
            raise InvalidConfigurationError("min_lr_ratio must be in [0, 1]")


class CosineScheduler:
    """
    Linear ramp to ``base_lr`` followed by a cosine curve down to ``min_lr``.

    With ``warmup_epochs = w`` the rate at epoch ``e < w`` is
    ``base_lr * (e + 1) / w``, so the last warmup epoch already trains at the
    full rate. Past ``total_epochs`` the rate stays at ``min_lr``.
    """

    def __init__(self, base_lr: float, total_epochs: int, config: CosineSchedulerConfig = None):
        if total_epochs <= 0:
            raise InvalidConfigurationError("total_epochs must be positive")
        self.config = config or CosineSchedulerConfig()
        self.base_lr = base_lr
        self.total_epochs = total_epochs
        self.warmup_epochs = int(total_epochs * self.config.warmup_ratio)
        self.min_lr = base_lr * self.config.min_lr_ratio

    def get_lr(self, epoch: int) -> float:
        """Rate for a 0-indexed epoch."""
        if epoch < self.warmup_epochs:
            return self.base_lr * (epoch + 1) / self.warmup_epochs

        span = max(1, self.total_epochs - self.warmup_epochs)
        progress = min(1.0, (epoch - self.warmup_epochs) / span)
        angle = 2.0 * math.pi * self.config.num_cycles * progress
        return self.min_lr + (self.base_lr - self.min_lr) * (1.0 + math.cos(angle)) / 2.0
