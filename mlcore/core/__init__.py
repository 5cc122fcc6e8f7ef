"""
Core numerical building blocks.

Tensor, activations, losses, optimizers, schedulers and configuration. No
dependency on the estimators or the network trainer.
"""

__version__ = "0.1.0"

from .tensor import Tensor

__all__ = ["Tensor"]
