"""
Loss interface shared by the regression and classification losses.

Network.train only talks to ``BaseLoss.compute``; every loss averages over
the batch and returns the gradient of that mean.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict

from ...errors import ShapeMismatchError
from ..tensor import Tensor


@dataclass
class LossOutput:
    """Batch-mean loss, its gradient w.r.t. the predictions, and loggable metrics."""
    loss: float
    grad: Tensor
    metrics: Dict[str, float] = field(default_factory=dict)


class BaseLoss(ABC):
    """
    Subclasses set ``name`` and implement ``forward`` (batch-mean value) and
    ``backward`` (its gradient). Shapes are checked once, in ``compute``.
    """

    name: str = "loss"

    @abstractmethod
    def forward(self, predictions: Tensor, targets: Tensor) -> float:
        """Mean loss over the batch; inputs are [batch, outputs]."""

    @abstractmethod
    def backward(self, predictions: Tensor, targets: Tensor) -> Tensor:
        """d(mean loss)/d(predictions), shaped like predictions."""

    @property
    def is_classification(self) -> bool:
        """Whether accuracy is a meaningful companion metric."""
        return False

    def compute(self, predictions: Tensor, targets: Tensor) -> LossOutput:
        """Validate shapes, then evaluate forward and backward."""
        check_same_shape(predictions, targets)
        value = self.forward(predictions, targets)
        return LossOutput(
            loss=value,
            grad=self.backward(predictions, targets),
            metrics={f"{self.name}_loss": value},
        )


def check_same_shape(predictions: Tensor, targets: Tensor) -> None:
    if predictions.shape != targets.shape:
        raise ShapeMismatchError(
            f"Predictions shape {predictions.shape} does not match targets shape {targets.shape}"
        )


def batch_size(predictions: Tensor) -> int:
    return predictions.shape[0] if predictions.rank > 1 else 1
