"""
Network layers.

The layer set is closed: Dense, ActivationLayer, Dropout and BatchNorm. They
share a structural interface (``LayerProtocol``) instead of a base class, and
the network dispatches on that interface only.

All layers operate on [batch, features] tensors; a rank-1 input is treated
as a batch of one and returned with rank 1.
"""

from typing import List, Optional, Protocol

import numpy as np

from ..core.activations import Activation, get_activation
from ..core.tensor import Tensor
from ..errors import DimensionMismatchError, InvalidConfigurationError
from ..infrastructure.reproducibility import RandomState, make_rng


class LayerProtocol(Protocol):
    """
    Protocol every layer implements.

    ``backward`` must be called after ``forward`` on the same batch; it
    stores parameter gradients on the layer and returns dL/dinput.
    """

    name: str
    training: bool

    def forward(self, x: Tensor) -> Tensor:
        ...

    def backward(self, grad: Tensor) -> Tensor:
        ...

    @property
    def parameters(self) -> List[Tensor]:
        ...

    @property
    def gradients(self) -> List[Tensor]:
        ...

    def set_parameters(self, parameters: List[Tensor]) -> None:
        ...

    def output_size(self, input_size: Optional[int]) -> Optional[int]:
        ...

    def reset_parameters(self, random_state: RandomState = None) -> None:
        ...


def _as_batch(x: Tensor) -> Tensor:
    return x.reshape([1, x.count]) if x.rank == 1 else x


def _check_parameters(layer_name: str, current: List[Tensor], new: List[Tensor]) -> None:
    if len(new) != len(current):
        raise DimensionMismatchError(
            f"{layer_name} expects {len(current)} parameter tensors, got {len(new)}"
        )
    for old, replacement in zip(current, new):
        if old.shape != replacement.shape:
            raise DimensionMismatchError(
                f"{layer_name} parameter shape {old.shape} cannot be replaced by {replacement.shape}"
            )


class Dense:
    """
    Fully connected layer: activation(x @ W + b).

    Weights have shape [input_size, output_size]. The layer owns its weight
    and bias tensors; an optimizer step replaces them via set_parameters.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation=None,
        use_bias: bool = True,
        weight_init: str = "xavier",
        name: str = "dense",
        random_state: RandomState = None,
    ):
        if input_size <= 0 or output_size <= 0:
            raise InvalidConfigurationError("Dense sizes must be positive")
        self.name = name
        self.input_size = input_size
        self.output_size_ = output_size
        self.use_bias = use_bias
        self.activation: Optional[Activation] = (
            get_activation(activation) if activation is not None else None
        )
        self.training = True
        if weight_init not in ("xavier", "he"):
            raise InvalidConfigurationError(f"Unknown weight_init: {weight_init}")
        self.weight_init = weight_init
        self.reset_parameters(random_state)

    def reset_parameters(self, random_state: RandomState = None) -> None:
        """Draw fresh weights (zero bias) and clear cached gradients."""
        rng = make_rng(random_state)
        if self.weight_init == "xavier":
            std = np.sqrt(2.0 / (self.input_size + self.output_size_))
        else:
            std = np.sqrt(2.0 / self.input_size)
        shape = [self.input_size, self.output_size_]
        self.weights = Tensor.randn(shape, std=std, random_state=rng)
        self.bias: Optional[Tensor] = Tensor.zeros([self.output_size_]) if self.use_bias else None

        self._weights_grad = Tensor.zeros(shape)
        self._bias_grad: Optional[Tensor] = (
            Tensor.zeros([self.output_size_]) if self.use_bias else None
        )
        self._last_input: Optional[Tensor] = None
        self._last_preactivation: Optional[Tensor] = None

    @property
    def parameters(self) -> List[Tensor]:
        return [self.weights, self.bias] if self.bias is not None else [self.weights]

    @property
    def gradients(self) -> List[Tensor]:
        if self._bias_grad is not None:
            return [self._weights_grad, self._bias_grad]
        return [self._weights_grad]

    def set_parameters(self, parameters: List[Tensor]) -> None:
        _check_parameters(self.name, self.parameters, parameters)
        self.weights = parameters[0]
        if self.use_bias:
            self.bias = parameters[1]

    def output_size(self, input_size: Optional[int]) -> Optional[int]:
        if input_size is not None and input_size != self.input_size:
            raise DimensionMismatchError(
                f"{self.name} expects {self.input_size} input features but the previous "
                f"layer produces {input_size}"
            )
        return self.output_size_

    def forward(self, x: Tensor) -> Tensor:
        batch = _as_batch(x)
        if batch.shape[-1] != self.input_size:
            raise DimensionMismatchError(
                f"{self.name} expects {self.input_size} input features, got {batch.shape[-1]}"
            )
        z = batch.matmul(self.weights)
        if self.bias is not None:
            z = Tensor._wrap(z.to_numpy() + self.bias.data)
        self._last_input = batch
        self._last_preactivation = z
        out = self.activation.forward(z) if self.activation is not None else z
        return out.reshape([self.output_size_]) if x.rank == 1 else out

    def backward(self, grad: Tensor) -> Tensor:
        if self._last_input is None:
            raise RuntimeError(f"{self.name}: forward must be called before backward")
        grad = _as_batch(grad)
        if self.activation is not None:
            grad = self.activation.backward(self._last_preactivation, grad)

        self._weights_grad = self._last_input.T.matmul(grad)
        if self.use_bias:
            self._bias_grad = grad.sum(axis=0)
        return grad.matmul(self.weights.T)


class ActivationLayer:
    """Stand-alone activation with no parameters."""

    def __init__(self, activation, name: Optional[str] = None):
        self.activation = get_activation(activation)
        self.name = name or self.activation.name
        self.training = True
        self._last_input: Optional[Tensor] = None

    @property
    def parameters(self) -> List[Tensor]:
        return []

    @property
    def gradients(self) -> List[Tensor]:
        return []

    def set_parameters(self, parameters: List[Tensor]) -> None:
        _check_parameters(self.name, [], parameters)

    def output_size(self, input_size: Optional[int]) -> Optional[int]:
        return input_size

    def reset_parameters(self, random_state: RandomState = None) -> None:
        pass

    def forward(self, x: Tensor) -> Tensor:
        self._last_input = x
        return self.activation.forward(x)

    def backward(self, grad: Tensor) -> Tensor:
        if self._last_input is None:
            raise RuntimeError(f"{self.name}: forward must be called before backward")
        if grad.shape != self._last_input.shape:
            grad = grad.reshape(self._last_input.shape)
        return self.activation.backward(self._last_input, grad)


class Dropout:
    """
    Inverted dropout.

    In training mode each element is zeroed with probability ``rate`` and the
    survivors are scaled by 1 / (1 - rate). In inference mode it is the
    identity.
    """

    def __init__(self, rate: float = 0.5, name: str = "dropout", random_state: RandomState = None):
        if not 0 <= rate < 1:
            raise InvalidConfigurationError(f"Dropout rate must be in [0, 1), got {rate}")
        self.rate = rate
        self.name = name
        self.training = True
        self._rng = make_rng(random_state)
        self._mask: Optional[np.ndarray] = None

    @property
    def parameters(self) -> List[Tensor]:
        return []

    @property
    def gradients(self) -> List[Tensor]:
        return []

    def set_parameters(self, parameters: List[Tensor]) -> None:
        _check_parameters(self.name, [], parameters)

    def output_size(self, input_size: Optional[int]) -> Optional[int]:
        return input_size

    def reset_parameters(self, random_state: RandomState = None) -> None:
        pass

    def forward(self, x: Tensor) -> Tensor:
        if not self.training or self.rate == 0:
            self._mask = None
            return x.copy()
        keep = self._rng.random(x.count) >= self.rate
        self._mask = keep / (1.0 - self.rate)
        return Tensor(x.shape, x.data * self._mask)

    def backward(self, grad: Tensor) -> Tensor:
        if self._mask is None:
            return grad.copy()
        return Tensor(grad.shape, grad.data * self._mask)


class BatchNorm:
    """
    Batch normalization over the batch axis, one statistic per feature.

    Training mode normalizes with the batch mean/variance and updates the
    running statistics; inference mode uses the running statistics.
    """

    def __init__(
        self,
        num_features: int,
        epsilon: float = 1e-5,
        momentum: float = 0.1,
        name: str = "batch_norm",
    ):
        if num_features <= 0:
            raise InvalidConfigurationError("num_features must be positive")
        if not 0 < momentum <= 1:
            raise InvalidConfigurationError("momentum must be in (0, 1]")
        self.name = name
        self.num_features = num_features
        self.epsilon = epsilon
        self.momentum = momentum
        self.training = True
        self._input_rank = 2
        self.reset_parameters()

    def reset_parameters(self, random_state: RandomState = None) -> None:
        """Unit scale, zero shift, and fresh running statistics."""
        n = self.num_features
        self.gamma = Tensor.ones([n])
        self.beta = Tensor.zeros([n])
        self.running_mean = Tensor.zeros([n])
        self.running_var = Tensor.ones([n])

        self._gamma_grad = Tensor.zeros([n])
        self._beta_grad = Tensor.zeros([n])
        self._normalized: Optional[np.ndarray] = None
        self._inv_std: Optional[np.ndarray] = None

    @property
    def parameters(self) -> List[Tensor]:
        return [self.gamma, self.beta]

    @property
    def gradients(self) -> List[Tensor]:
        return [self._gamma_grad, self._beta_grad]

    def set_parameters(self, parameters: List[Tensor]) -> None:
        _check_parameters(self.name, self.parameters, parameters)
        self.gamma, self.beta = parameters

    def output_size(self, input_size: Optional[int]) -> Optional[int]:
        if input_size is not None and input_size != self.num_features:
            raise DimensionMismatchError(
                f"{self.name} normalizes {self.num_features} features but receives {input_size}"
            )
        return self.num_features

    def forward(self, x: Tensor) -> Tensor:
        self._input_rank = x.rank
        values = _as_batch(x).to_numpy()
        if values.shape[-1] != self.num_features:
            raise DimensionMismatchError(
                f"{self.name} expects {self.num_features} features, got {values.shape[-1]}"
            )

        if self.training:
            mean = values.mean(axis=0)
            var = values.var(axis=0)
            m = self.momentum
            self.running_mean = Tensor([self.num_features], (1 - m) * self.running_mean.data + m * mean)
            self.running_var = Tensor([self.num_features], (1 - m) * self.running_var.data + m * var)
        else:
            mean = self.running_mean.data
            var = self.running_var.data

        self._inv_std = 1.0 / np.sqrt(var + self.epsilon)
        self._normalized = (values - mean) * self._inv_std
        out = Tensor._wrap(self.gamma.data * self._normalized + self.beta.data)
        return out.reshape([self.num_features]) if x.rank == 1 else out

    def backward(self, grad: Tensor) -> Tensor:
        if self._normalized is None:
            raise RuntimeError(f"{self.name}: forward must be called before backward")
        g = _as_batch(grad).to_numpy()
        x_hat = self._normalized
        n = g.shape[0]

        self._gamma_grad = Tensor._wrap(np.sum(g * x_hat, axis=0))
        self._beta_grad = Tensor._wrap(np.sum(g, axis=0))

        dx_hat = g * self.gamma.data
        if self.training:
            dx = (self._inv_std / n) * (
                n * dx_hat
                - np.sum(dx_hat, axis=0)
                - x_hat * np.sum(dx_hat * x_hat, axis=0)
            )
        else:
            dx = dx_hat * self._inv_std
        out = Tensor._wrap(dx)
        return out.reshape([self.num_features]) if self._input_rank == 1 else out


Layer = LayerProtocol

LAYER_CLASSES = (Dense, ActivationLayer, Dropout, BatchNorm)
