"""
Training callbacks.

A callback is any object with the four hooks of ``TrainingCallback``; the
network calls them around the epoch loop. Setting ``network.stop_training``
from ``on_epoch_end`` ends training after the current epoch.
"""

from typing import Any, Dict, List, Optional, Protocol
import logging
import math

from ..core.tensor import Tensor
from ..errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


class TrainingCallback(Protocol):
    def on_train_begin(self, network: Any) -> None:
        ...

    def on_epoch_begin(self, network: Any, epoch: int) -> None:
        ...

    def on_epoch_end(self, network: Any, epoch: int, logs: Dict[str, float]) -> None:
        ...

    def on_train_end(self, network: Any) -> None:
        ...


class EarlyStopping:
    """
    Stop training when a monitored metric stops improving.

    Args:
        monitor: Key in the epoch logs, e.g. "val_loss" or "loss"
        patience: Epochs without improvement before stopping
        min_delta: Minimum change that counts as an improvement
        mode: "min" for losses, "max" for accuracies
        restore_best_weights: Reload the best epoch's weights on stop
    """

    def __init__(
        self,
        monitor: str = "val_loss",
        patience: int = 5,
        min_delta: float = 0.0,
        mode: str = "min",
        restore_best_weights: bool = False,
    ):
        if patience < 0:
            raise InvalidConfigurationError("patience must be >= 0")
        if mode not in ("min", "max"):
            raise InvalidConfigurationError(f"mode must be 'min' or 'max', got {mode}")
        self.monitor = monitor
        self.patience = patience
        self.min_delta = abs(min_delta)
        self.mode = mode
        self.restore_best_weights = restore_best_weights

        self.best: Optional[float] = None
        self.best_epoch: Optional[int] = None
        self.wait = 0
        self.stopped_epoch: Optional[int] = None
        self._best_weights: Optional[List[Tensor]] = None

    def _improved(self, value: float) -> bool:
        if self.best is None:
            return True
        if self.mode == "min":
            return value < self.best - self.min_delta
        return value > self.best + self.min_delta

    def on_train_begin(self, network: Any) -> None:
        self.best = None
        self.best_epoch = None
        self.wait = 0
        self.stopped_epoch = None
        self._best_weights = None

    def on_epoch_begin(self, network: Any, epoch: int) -> None:
        pass

    def on_epoch_end(self, network: Any, epoch: int, logs: Dict[str, float]) -> None:
        value = logs.get(self.monitor)
        if value is None or math.isnan(value):
            logger.warning(
                f"EarlyStopping monitor '{self.monitor}' not available; "
                f"got keys {sorted(logs)}"
            )
            return

        if self._improved(value):
            self.best = value
            self.best_epoch = epoch
            self.wait = 0
            if self.restore_best_weights:
                self._best_weights = network.get_weights()
            return

        self.wait += 1
        if self.wait >= self.patience:
            self.stopped_epoch = epoch
            network.stop_training = True
            logger.info(
                f"Early stopping at epoch {epoch + 1}: {self.monitor} has not improved "
                f"since epoch {self.best_epoch + 1} (best {self.best:.6f})"
            )

    def on_train_end(self, network: Any) -> None:
        if self.restore_best_weights and self.stopped_epoch is not None and self._best_weights:
            network.set_weights(self._best_weights)
            logger.info(f"Restored weights from epoch {self.best_epoch + 1}")
