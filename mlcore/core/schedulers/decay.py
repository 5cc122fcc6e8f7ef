"""
Step and exponential learning rate decay.
"""

from dataclasses import dataclass

from ...errors import InvalidConfigurationError


@dataclass
class StepDecayScheduler:
    """Multiply the rate by gamma every step_size epochs."""
    base_lr: float
    step_size: int
    gamma: float = 0.1

    def __post_init__(self) -> None:
        if self.step_size <= 0:
            raise InvalidConfigurationError("step_size must be positive")
        if not 0 < self.gamma <= 1:
            raise InvalidConfigurationError("gamma must be in (0, 1]")

    def get_lr(self, epoch: int) -> float:
        return self.base_lr * self.gamma ** (epoch // self.step_size)


@dataclass
class ExponentialDecayScheduler:
    """Multiply the rate by gamma every epoch."""
    base_lr: float
    gamma: float = 0.95

    def __post_init__(self) -> None:
        if not 0 < self.gamma <= 1:
            raise InvalidConfigurationError("gamma must be in (0, 1]")

    def get_lr(self, epoch: int) -> float:
        return self.base_lr * self.gamma ** epoch
