"""
Loss functions for network training.

- MSE / MAE / Huber: regression
- BCE / BCEWithLogits: binary classification
- CategoricalCrossEntropy: multi-class classification
- Hinge: margin classification
- NLL: negative log-likelihood on log-probabilities
- CosineEmbedding: direction agreement between vector outputs and targets
"""

from enum import Enum

from ...errors import InvalidConfigurationError
from .base import BaseLoss, LossOutput
from .regression import MSELoss, MAELoss, HuberLoss, HuberConfig, CosineEmbeddingLoss
from .classification import (
    BCELoss,
    BCEWithLogitsLoss,
    CategoricalCrossEntropyLoss,
    CrossEntropyConfig,
    HingeLoss,
    NLLLoss,
)


class LossType(Enum):
    """Loss choices accepted by Network.compile."""
    MSE = "mse"
    MAE = "mae"
    HUBER = "huber"
    BCE = "bce"
    BCE_WITH_LOGITS = "bce_with_logits"
    CATEGORICAL_CROSSENTROPY = "categorical_crossentropy"
    HINGE = "hinge"
    NLL = "nll"
    COSINE_EMBEDDING = "cosine_embedding"

    def create(self) -> BaseLoss:
        return _LOSSES[self]()


_LOSSES = {
    LossType.MSE: MSELoss,
    LossType.MAE: MAELoss,
    LossType.HUBER: HuberLoss,
    LossType.BCE: BCELoss,
    LossType.BCE_WITH_LOGITS: BCEWithLogitsLoss,
    LossType.CATEGORICAL_CROSSENTROPY: CategoricalCrossEntropyLoss,
    LossType.HINGE: HingeLoss,
    LossType.NLL: NLLLoss,
    LossType.COSINE_EMBEDDING: CosineEmbeddingLoss,
}

_ALIASES = {
    "binary_crossentropy": "bce",
    "categoricalcrossentropy": "categorical_crossentropy",
    "categorical_cross_entropy": "categorical_crossentropy",
    "cce": "categorical_crossentropy",
    "negative_log_likelihood": "nll",
    "cosine": "cosine_embedding",
    "crossentropy": "categorical_crossentropy",
}


def get_loss(loss) -> BaseLoss:
    """
    Resolve a loss from a name, a LossType, or a BaseLoss instance.

    Raises:
        InvalidConfigurationError: For unknown names
    """
    if isinstance(loss, BaseLoss):
        return loss
    if isinstance(loss, LossType):
        return loss.create()
    if isinstance(loss, str):
        key = loss.lower()
        key = _ALIASES.get(key, key)
        try:
            return LossType(key).create()
        except ValueError:
            valid = [t.value for t in LossType]
            raise InvalidConfigurationError(f"Unknown loss: {loss}. Must be one of {valid}") from None
    raise InvalidConfigurationError(f"Cannot interpret {loss!r} as a loss")


__all__ = [
    "BaseLoss",
    "LossOutput",
    "LossType",
    "get_loss",
    "MSELoss",
    "MAELoss",
    "HuberLoss",
    "HuberConfig",
    "BCELoss",
    "BCEWithLogitsLoss",
    "CategoricalCrossEntropyLoss",
    "CrossEntropyConfig",
    "HingeLoss",
    "NLLLoss",
    "CosineEmbeddingLoss",
]
