"""
Classification losses.

- BCE: binary cross-entropy on probabilities (sigmoid outputs)
- BCEWithLogits: binary cross-entropy on raw scores
- CategoricalCrossEntropy: multi-class cross-entropy on probabilities
  (softmax outputs) or, with from_logits, on raw scores
- Hinge: margin loss for targets in {-1, +1} (0 is mapped to -1)
- NLL: negative log-likelihood on log-probabilities

Cross-entropy and NLL losses are summed over classes and averaged over the batch.
"""

from dataclasses import dataclass

import numpy as np

from ..activations import softmax
from ..tensor import Tensor
from .base import BaseLoss, batch_size, check_same_shape


@dataclass
class CrossEntropyConfig:
    """Cross-entropy configuration."""
    epsilon: float = 1e-7  # Probability clipping bound
    from_logits: bool = False


class BCELoss(BaseLoss):
    """Binary cross-entropy on probabilities."""

    name = "bce"

    def __init__(self, config: CrossEntropyConfig = None):
        self.config = config or CrossEntropyConfig()

    @property
    def is_classification(self) -> bool:
        return True

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        eps = self.config.epsilon
        p = np.clip(predictions.data, eps, 1.0 - eps)
        t = targets.data
        return float(-np.mean(t * np.log(p) + (1.0 - t) * np.log(1.0 - p)))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        eps = self.config.epsilon
        p = np.clip(predictions.data, eps, 1.0 - eps)
        t = targets.data
        grad = (p - t) / (p * (1.0 - p))
        return Tensor(predictions.shape, grad / p.size)


class BCEWithLogitsLoss(BaseLoss):
    """Binary cross-entropy on raw scores, stable for large magnitudes."""

    name = "bce_with_logits"

    @property
    def is_classification(self) -> bool:
        return True

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        z = predictions.data
        t = targets.data
        # log(1 + exp(z)) - t*z
        return float(np.mean(np.logaddexp(0.0, z) - t * z))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        z = predictions.data
        sig = 0.5 * (1.0 + np.tanh(0.5 * z))
        return Tensor(predictions.shape, (sig - targets.data) / z.size)


class CategoricalCrossEntropyLoss(BaseLoss):
    """
    Multi-class cross-entropy with one-hot targets.

    With from_logits=False the predictions are expected to be probabilities,
    typically the output of a softmax layer.
    """

    name = "categorical_crossentropy"

    def __init__(self, config: CrossEntropyConfig = None):
        self.config = config or CrossEntropyConfig()

    @property
    def is_classification(self) -> bool:
        return True

    def _probabilities(self, predictions: Tensor) -> np.ndarray:
        values = predictions.to_numpy()
        if self.config.from_logits:
            values = softmax(values)
        return np.clip(values, self.config.epsilon, 1.0)

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        p = self._probabilities(predictions)
        t = targets.to_numpy()
        return float(-np.sum(t * np.log(p)) / batch_size(predictions))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        t = targets.to_numpy()
        n = batch_size(predictions)
        if self.config.from_logits:
            grad = softmax(predictions.to_numpy()) - t
        else:
            grad = -t / self._probabilities(predictions)
        return Tensor._wrap(grad / n)


class HingeLoss(BaseLoss):
    """Hinge loss max(0, 1 - t*y) with targets in {-1, +1}."""

    name = "hinge"

    @property
    def is_classification(self) -> bool:
        return True

    @staticmethod
    def _signed(targets: Tensor) -> np.ndarray:
        return np.where(targets.data > 0, 1.0, -1.0)

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        margin = 1.0 - self._signed(targets) * predictions.data
        return float(np.mean(np.maximum(0.0, margin)))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        t = self._signed(targets)
        margin = 1.0 - t * predictions.data
        grad = np.where(margin > 0, -t, 0.0)
        return Tensor(predictions.shape, grad / grad.size)


class NLLLoss(BaseLoss):
    """
    Negative log-likelihood on log-probabilities with one-hot targets.

    Pair with a log-softmax output; the value then equals categorical
    cross-entropy on the matching probabilities.
    """

    name = "nll"

    @property
    def is_classification(self) -> bool:
        return True

    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        check_same_shape(predictions, targets)
        return float(-np.sum(targets.data * predictions.data) / batch_size(predictions))

    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        check_same_shape(predictions, targets)
        return Tensor(predictions.shape, -targets.data / batch_size(predictions))
