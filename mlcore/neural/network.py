"""
Network - layer stack with compile/train/evaluate/predict.

Lifecycle:
    UNBUILT --add--> BUILT --compile--> COMPILED --train--> TRAINED
                                                       `--> FAILED (divergence)

Training runs mini-batch gradient descent: forward through every layer, loss
and its gradient at the output, backward in reverse layer order, then one
optimizer step over every trainable parameter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from ..core.config.training import ExperimentConfig
from ..core.losses import BaseLoss, get_loss
from ..core.losses.base import check_same_shape
from ..core.optimizers import Optimizer, get_optimizer
from ..core.tensor import Tensor
from ..core.training.gradient_utils import GradientAccumulator, GradientConfig
from ..errors import (
    DimensionMismatchError,
    DivergenceError,
    InvalidConfigurationError,
    NotCompiledError,
)
from ..infrastructure.reproducibility import RandomState, make_rng
from .callbacks import TrainingCallback
from .layers import ActivationLayer, BatchNorm, Dense, Dropout, LayerProtocol

logger = logging.getLogger(__name__)


class NetworkState(Enum):
    UNBUILT = "unbuilt"
    BUILT = "built"
    COMPILED = "compiled"
    TRAINED = "trained"
    FAILED = "failed"


@dataclass
class History:
    """Per-epoch training record."""

    loss: List[float] = field(default_factory=list)
    accuracy: Optional[List[float]] = None  # Only for classification losses
    val_loss: List[float] = field(default_factory=list)
    val_accuracy: List[float] = field(default_factory=list)
    learning_rate: List[float] = field(default_factory=list)

    @property
    def epochs(self) -> int:
        return len(self.loss)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"loss": list(self.loss), "learning_rate": list(self.learning_rate)}
        if self.accuracy is not None:
            result["accuracy"] = list(self.accuracy)
        if self.val_loss:
            result["val_loss"] = list(self.val_loss)
        if self.val_accuracy:
            result["val_accuracy"] = list(self.val_accuracy)
        return result


def _as_matrix(data: Any, what: str) -> Tensor:
    tensor = data if isinstance(data, Tensor) else Tensor.from_data(data)
    if tensor.rank == 1:
        tensor = tensor.reshape([tensor.count, 1])
    if tensor.rank != 2:
        raise DimensionMismatchError(f"{what} must be 2-D [samples, features], got shape {tensor.shape}")
    return tensor


def to_class_labels(loss_name: str, values: np.ndarray) -> np.ndarray:
    """Integer class labels from network outputs or targets: argmax, or a threshold for one column."""
    if values.shape[1] > 1:
        return np.argmax(values, axis=1)
    if loss_name in ("bce_with_logits", "hinge"):
        return (values[:, 0] > 0).astype(np.int64)
    return (values[:, 0] >= 0.5).astype(np.int64)


def _accuracy(loss: BaseLoss, predictions: np.ndarray, targets: np.ndarray) -> float:
    """Fraction of correct predictions; argmax for multi-output, threshold otherwise."""
    if predictions.shape[0] == 0:
        return 0.0
    return float(np.mean(to_class_labels(loss.name, predictions) == to_class_labels(loss.name, targets)))


class Network:
    """
    Sequential neural network.

    Usage:
        net = Network(random_state=0)
        net.dense(2, 8, activation="tanh").dense(8, 1, activation="sigmoid")
        net.compile(optimizer="adam", loss="bce", learning_rate=0.05)
        history = net.train(x, y, epochs=200, batch_size=4)
        loss, accuracy = net.evaluate(x, y)
    """

    def __init__(self, name: str = "network", random_state: RandomState = None):
        self.name = name
        self.layers: List[LayerProtocol] = []
        self.optimizer: Optional[Optimizer] = None
        self.loss: Optional[BaseLoss] = None
        self.gradient_config = GradientConfig()
        self.state = NetworkState.UNBUILT
        self.history: Optional[History] = None
        self.stop_training = False
        self._rng = make_rng(random_state)
        self._checked_input_size: Optional[int] = None

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add(self, layer: LayerProtocol) -> "Network":
        """Append a layer; returns self for chaining."""
        for attr in ("forward", "backward", "parameters", "gradients", "set_parameters"):
            if not hasattr(layer, attr):
                raise InvalidConfigurationError(
                    f"{type(layer).__name__} is not a layer (missing '{attr}')"
                )
        self.layers.append(layer)
        self._checked_input_size = None
        if self.state == NetworkState.UNBUILT:
            self.state = NetworkState.BUILT
        return self

    def _layer_name(self, prefix: str) -> str:
        return f"{prefix}_{len(self.layers)}"

    def dense(
        self,
        input_size: int,
        output_size: int,
        activation=None,
        use_bias: bool = True,
        weight_init: str = "xavier",
    ) -> "Network":
        return self.add(
            Dense(
                input_size,
                output_size,
                activation=activation,
                use_bias=use_bias,
                weight_init=weight_init,
                name=self._layer_name("dense"),
                random_state=self._rng,
            )
        )

    def activation(self, activation) -> "Network":
        return self.add(ActivationLayer(activation, name=self._layer_name("activation")))

    def dropout(self, rate: float = 0.5) -> "Network":
        return self.add(Dropout(rate, name=self._layer_name("dropout"), random_state=self._rng))

    def batch_norm(self, num_features: int, epsilon: float = 1e-5, momentum: float = 0.1) -> "Network":
        return self.add(
            BatchNorm(num_features, epsilon=epsilon, momentum=momentum, name=self._layer_name("batch_norm"))
        )

    def compile(
        self,
        optimizer="adam",
        loss="mse",
        learning_rate: Optional[float] = None,
        max_grad_norm: Optional[float] = None,
        accumulation_steps: int = 1,
    ) -> "Network":
        """
        Attach an optimizer and a loss.

        Args:
            optimizer: Name ("sgd", "adam", ...), OptimizerType, or instance
            loss: Name ("mse", "bce", "categorical_crossentropy", ...), LossType, or instance
            learning_rate: Overrides the optimizer default when given
            max_grad_norm: Clip gradients to this global norm
            accumulation_steps: Batches per optimizer step

        Raises:
            InvalidConfigurationError: Empty network or unknown names
        """
        if not self.layers:
            raise InvalidConfigurationError("Cannot compile a network with no layers")
        self.optimizer = get_optimizer(optimizer, learning_rate)
        if learning_rate is not None:
            self.optimizer.learning_rate = learning_rate
        self.loss = get_loss(loss)
        self.gradient_config = GradientConfig(
            accumulation_steps=accumulation_steps, max_grad_norm=max_grad_norm
        )
        if self.state != NetworkState.FAILED:
            self.state = NetworkState.COMPILED
        logger.debug(
            f"Compiled {self.name}: optimizer={self.optimizer.name}, loss={self.loss.name}, "
            f"lr={self.optimizer.learning_rate}"
        )
        return self

    @classmethod
    def from_config(cls, config: ExperimentConfig, random_state: RandomState = None) -> "Network":
        """Build and compile a network from an experiment configuration."""
        seed = random_state if random_state is not None else config.training.seed
        network = cls(name=config.name, random_state=seed)

        features = config.input_size
        for layer in config.layers:
            if layer.type == "dense":
                if layer.input_size is not None and layer.input_size != features:
                    raise DimensionMismatchError(
                        f"Layer {len(network.layers)} declares input_size {layer.input_size} "
                        f"but receives {features} features"
                    )
                network.dense(features, layer.units, activation=layer.activation, use_bias=layer.use_bias)
                features = layer.units
            elif layer.type == "activation":
                network.activation(layer.activation)
            elif layer.type == "dropout":
                network.dropout(layer.rate)
            else:
                network.batch_norm(features)

        training = config.training
        return network.compile(
            optimizer=training.optimizer,
            loss=training.loss,
            learning_rate=training.learning_rate,
            max_grad_norm=training.max_grad_norm,
            accumulation_steps=training.accumulation_steps,
        )

    # ------------------------------------------------------------------
    # Forward / backward
    # ------------------------------------------------------------------

    @property
    def is_compiled(self) -> bool:
        return self.optimizer is not None and self.loss is not None

    def _check_layer_chain(self, input_size: int) -> None:
        if self._checked_input_size == input_size:
            return
        size: Optional[int] = input_size
        for layer in self.layers:
            size = layer.output_size(size)
        self._checked_input_size = input_size

    def _set_training(self, training: bool) -> None:
        for layer in self.layers:
            layer.training = training

    def forward(self, x: Tensor, training: bool = False) -> Tensor:
        """Run every layer in order."""
        if not self.layers:
            raise InvalidConfigurationError("Network has no layers")
        self._check_layer_chain(x.shape[-1])
        self._set_training(training)
        out = x
        for layer in self.layers:
            out = layer.forward(out)
        return out

    def _backward(self, grad: Tensor) -> None:
        for layer in reversed(self.layers):
            grad = layer.backward(grad)

    def _parameters(self) -> List[Tensor]:
        return [p for layer in self.layers for p in layer.parameters]

    def _gradients(self) -> List[Tensor]:
        return [g for layer in self.layers for g in layer.gradients]

    def _assign_parameters(self, parameters: Sequence[Tensor]) -> None:
        offset = 0
        for layer in self.layers:
            count = len(layer.parameters)
            if count:
                layer.set_parameters(list(parameters[offset:offset + count]))
            offset += count

    def _apply_gradients(self, grads: List[Tensor]) -> None:
        self._assign_parameters(self.optimizer.step(self._parameters(), grads))

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _require_compiled(self, action: str) -> None:
        if not self.is_compiled:
            raise NotCompiledError(f"Network must be compiled before {action}")

    def _check_xy(self, x: Any, y: Any) -> Tuple[Tensor, Tensor]:
        x_t = _as_matrix(x, "x")
        y_t = _as_matrix(y, "y")
        if x_t.shape[0] != y_t.shape[0]:
            raise DimensionMismatchError(
                f"x has {x_t.shape[0]} samples but y has {y_t.shape[0]}"
            )
        if x_t.shape[0] == 0:
            raise DimensionMismatchError("Cannot train or evaluate on empty data")
        return x_t, y_t

    def train(
        self,
        x: Any,
        y: Any,
        epochs: int = 10,
        batch_size: int = 32,
        verbose: bool = True,
        shuffle: bool = True,
        validation_split: float = 0.0,
        validation_data: Optional[Tuple[Any, Any]] = None,
        callbacks: Optional[List[TrainingCallback]] = None,
        scheduler=None,
    ) -> History:
        """
        Fit the network with mini-batch gradient descent.

        Args:
            x: Inputs [samples, features]
            y: Targets [samples, outputs]
            epochs: Passes over the training data
            batch_size: Samples per batch
            verbose: Log one INFO line per epoch
            shuffle: Reshuffle sample order every epoch
            validation_split: Fraction of trailing samples held out for validation
            validation_data: Explicit (x_val, y_val); overrides validation_split
            callbacks: Objects implementing TrainingCallback
            scheduler: Object with get_lr(epoch) setting the rate per epoch

        Returns:
            History with per-epoch loss, accuracy (classification losses),
            validation metrics and learning rate

        Raises:
            NotCompiledError: If compile() has not been called
            DivergenceError: If a batch loss becomes NaN or infinite
        """
        self._require_compiled("training")
        if self.state == NetworkState.FAILED:
            raise DivergenceError(
                "Network diverged in a previous run; call reset_state() before training again"
            )
        if epochs <= 0:
            raise InvalidConfigurationError("epochs must be positive")
        if batch_size <= 0:
            raise InvalidConfigurationError("batch_size must be positive")
        if not 0 <= validation_split < 1:
            raise InvalidConfigurationError("validation_split must be in [0, 1)")

        x_t, y_t = self._check_xy(x, y)
        x_all, y_all = x_t.to_numpy(), y_t.to_numpy()

        x_val = y_val = None
        if validation_data is not None:
            val_x, val_y = self._check_xy(*validation_data)
            x_val, y_val = val_x.to_numpy(), val_y.to_numpy()
        elif validation_split > 0:
            n_val = int(len(x_all) * validation_split)
            if n_val > 0:
                x_val, y_val = x_all[-n_val:], y_all[-n_val:]
                x_all, y_all = x_all[:-n_val], y_all[:-n_val]
        if len(x_all) == 0:
            raise DimensionMismatchError("validation_split leaves no training samples")

        self._check_layer_chain(x_all.shape[1])
        callbacks = list(callbacks or [])
        history = History(accuracy=[] if self.loss.is_classification else None)
        accumulator = GradientAccumulator(self.gradient_config)
        self.stop_training = False
        n = len(x_all)

        for callback in callbacks:
            callback.on_train_begin(self)

        for epoch in range(epochs):
            if scheduler is not None:
                self.optimizer.learning_rate = scheduler.get_lr(epoch)
            for callback in callbacks:
                callback.on_epoch_begin(self, epoch)

            order = self._rng.permutation(n) if shuffle else np.arange(n)
            total_loss = 0.0
            total_correct = 0.0

            for start in range(0, n, batch_size):
                idx = order[start:start + batch_size]
                xb, yb = Tensor._wrap(x_all[idx]), Tensor._wrap(y_all[idx])

                predictions = self.forward(xb, training=True)
                output = self.loss.compute(predictions, yb)
                if not math.isfinite(output.loss):
                    self.state = NetworkState.FAILED
                    raise DivergenceError(
                        f"Loss became {output.loss} at epoch {epoch + 1}, batch {start // batch_size + 1}"
                    )
                self._backward(output.grad)

                ready = accumulator.accumulate(self._gradients())
                if ready is not None:
                    self._apply_gradients(ready)

                total_loss += output.loss * len(idx)
                if history.accuracy is not None:
                    total_correct += _accuracy(self.loss, predictions.to_numpy(), yb.to_numpy()) * len(idx)

            leftover = accumulator.flush()
            if leftover is not None:
                self._apply_gradients(leftover)

            logs = {"loss": total_loss / n}
            history.loss.append(logs["loss"])
            history.learning_rate.append(self.optimizer.learning_rate)
            if history.accuracy is not None:
                logs["accuracy"] = total_correct / n
                history.accuracy.append(logs["accuracy"])
            if x_val is not None:
                logs["val_loss"], logs["val_accuracy"] = self._evaluate_arrays(x_val, y_val)
                history.val_loss.append(logs["val_loss"])
                history.val_accuracy.append(logs["val_accuracy"])

            if verbose:
                metrics = " - ".join(f"{key}: {value:.4f}" for key, value in logs.items())
                logger.info(f"Epoch {epoch + 1}/{epochs} - {metrics}")

            for callback in callbacks:
                callback.on_epoch_end(self, epoch, logs)
            if self.stop_training:
                break

        for callback in callbacks:
            callback.on_train_end(self)

        self._set_training(False)
        self.state = NetworkState.TRAINED
        self.history = history
        return history

    def _evaluate_arrays(self, x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
        predictions = self.forward(Tensor._wrap(x), training=False)
        targets = Tensor._wrap(y)
        check_same_shape(predictions, targets)
        loss = self.loss.forward(predictions, targets)
        return loss, _accuracy(self.loss, predictions.to_numpy(), y)

    def evaluate(self, x: Any, y: Any) -> Tuple[float, float]:
        """
        Loss and accuracy on (x, y) without touching the weights.

        Accuracy uses argmax for multi-output networks and a 0.5 threshold
        for single-output networks.
        """
        self._require_compiled("evaluation")
        x_t, y_t = self._check_xy(x, y)
        return self._evaluate_arrays(x_t.to_numpy(), y_t.to_numpy())

    def predict(self, x: Any) -> Tensor:
        """Pure forward pass in inference mode."""
        self._require_compiled("prediction")
        tensor = x if isinstance(x, Tensor) else Tensor.from_data(x)
        return self.forward(tensor, training=False)

    def reset_state(self) -> None:
        """Reinitialise every parameter and optimizer state; clears a FAILED state."""
        for layer in self.layers:
            layer.reset_parameters(self._rng)
        if self.optimizer is not None:
            self.optimizer.reset()
        self.history = None
        if self.is_compiled:
            self.state = NetworkState.COMPILED
        else:
            self.state = NetworkState.BUILT if self.layers else NetworkState.UNBUILT

    # ------------------------------------------------------------------
    # Inspection and persistence
    # ------------------------------------------------------------------

    def parameter_count(self) -> int:
        return sum(p.count for p in self._parameters())

    def summary(self) -> str:
        """Human-readable table of layers, output sizes and parameter counts."""
        lines = [f'Network: "{self.name}"', "-" * 60]
        lines.append(f"{'Layer (type)':<30}{'Output':<15}{'Params':>15}")
        lines.append("=" * 60)
        size: Optional[int] = None
        for layer in self.layers:
            size = layer.output_size(size)
            params = sum(p.count for p in layer.parameters)
            label = f"{layer.name} ({type(layer).__name__})"
            output = f"(None, {size})" if size is not None else "?"
            lines.append(f"{label:<30}{output:<15}{params:>15,}")
        lines.append("=" * 60)
        lines.append(f"Total params: {self.parameter_count():,}")
        if self.optimizer is not None:
            lines.append(f"Optimizer: {self.optimizer.name} (lr={self.optimizer.learning_rate})")
        if self.loss is not None:
            lines.append(f"Loss: {self.loss.name}")
        return "\n".join(lines)

    def get_weights(self) -> List[Tensor]:
        """Copies of every trainable parameter in layer order."""
        return [p.copy() for p in self._parameters()]

    def set_weights(self, weights: Sequence[Tensor]) -> None:
        """Replace every trainable parameter; shapes must match get_weights()."""
        current = self._parameters()
        if len(weights) != len(current):
            raise DimensionMismatchError(
                f"Expected {len(current)} weight tensors, got {len(weights)}"
            )
        self._assign_parameters([w.copy() for w in weights])

    def state_dict(self) -> Dict[str, Any]:
        """JSON-compatible snapshot of all parameters and batch-norm statistics."""
        layers = []
        for layer in self.layers:
            entry: Dict[str, Any] = {
                "name": layer.name,
                "type": type(layer).__name__,
                "parameters": [{"shape": list(p.shape), "data": p.data.tolist()} for p in layer.parameters],
            }
            if isinstance(layer, BatchNorm):
                entry["running_mean"] = layer.running_mean.data.tolist()
                entry["running_var"] = layer.running_var.data.tolist()
            layers.append(entry)
        return {"name": self.name, "layers": layers}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        """Restore parameters produced by state_dict() on an identical architecture."""
        entries = state.get("layers", [])
        if len(entries) != len(self.layers):
            raise DimensionMismatchError(
                f"State has {len(entries)} layers but the network has {len(self.layers)}"
            )
        for layer, entry in zip(self.layers, entries):
            if entry.get("type") != type(layer).__name__:
                raise InvalidConfigurationError(
                    f"State layer type {entry.get('type')} does not match {type(layer).__name__}"
                )
            params = [Tensor(p["shape"], p["data"]) for p in entry.get("parameters", [])]
            layer.set_parameters(params)
            if isinstance(layer, BatchNorm):
                layer.running_mean = Tensor([layer.num_features], entry["running_mean"])
                layer.running_var = Tensor([layer.num_features], entry["running_var"])
