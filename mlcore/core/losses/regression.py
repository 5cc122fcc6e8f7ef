"""
Regression losses: mean squared error, mean absolute error, Huber, and the
cosine embedding loss for vector targets.

Element losses are averaged over every output of every sample; the cosine
loss is averaged over rows.
"""

from dataclasses import dataclass

import numpy as np

from ..tensor import Tensor
from .base import BaseLoss, batch_size, check_same_shape


class MSELoss(BaseLoss):
    """Mean squared error."""

    name = "mse"

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        diff = predictions.data - targets.data
        return float(np.mean(diff ** 2))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        diff = predictions.data - targets.data
        return Tensor(predictions.shape, 2.0 * diff / diff.size)


class MAELoss(BaseLoss):
    """Mean absolute error."""

    name = "mae"

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        return float(np.mean(np.abs(predictions.data - targets.data)))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        diff = predictions.data - targets.data
        return Tensor(predictions.shape, np.sign(diff) / diff.size)


@dataclass
class HuberConfig:
    """Huber loss configuration."""
    delta: float = 1.0  # Switch point between quadratic and linear


class HuberLoss(BaseLoss):
    """
    Huber loss.

    Quadratic for residuals smaller than delta, linear beyond. Less
    sensitive to outliers than MSE.
    """

    name = "huber"

    def __init__(self, config: HuberConfig = None):
        self.config = config or HuberConfig()

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        delta = self.config.delta
        diff = np.abs(predictions.data - targets.data)
        quadratic = 0.5 * diff ** 2
        linear = delta * (diff - 0.5 * delta)
        return float(np.mean(np.where(diff <= delta, quadratic, linear)))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        delta = self.config.delta
        diff = predictions.data - targets.data
        grad = np.where(np.abs(diff) <= delta, diff, delta * np.sign(diff))
        return Tensor(predictions.shape, grad / diff.size)


class CosineEmbeddingLoss(BaseLoss):
    """
    One minus the cosine similarity of each prediction row with its target
    row, averaged over the batch. Rank-1 inputs are a single row.
    """

    name = "cosine_embedding"

    def __init__(self, epsilon: float = 1e-8):
        self.epsilon = epsilon

    @staticmethod
    def _rows(predictions: Tensor, targets: Tensor):
        n = batch_size(predictions)
        return predictions.data.reshape(n, -1), targets.data.reshape(n, -1)

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        p, t = self._rows(predictions, targets)
        norms = np.linalg.norm(p, axis=1) * np.linalg.norm(t, axis=1) + self.epsilon
        cosine = np.sum(p * t, axis=1) / norms
        return float(np.mean(1.0 - cosine))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        p, t = self._rows(predictions, targets)
        p_norm = np.linalg.norm(p, axis=1, keepdims=True)
        t_norm = np.linalg.norm(t, axis=1, keepdims=True)
        denom = p_norm * t_norm + self.epsilon
        dot = np.sum(p * t, axis=1, keepdims=True)
        # d(p.t / denom)/dp with d|p|/dp = p / |p|; zero rows contribute only t / denom
        unit = p / np.where(p_norm > 0, p_norm, 1.0)
        d_cosine = t / denom - dot * t_norm * unit / denom ** 2
        return Tensor(predictions.shape, (-d_cosine / len(p)).reshape(-1))
