"""
Activation functions.

Each activation is a small stateless object exposing ``forward(x)`` and
``backward(x, grad)``, where ``backward`` returns dL/dx given dL/dy and the
forward input ``x``. Softmax acts row-wise on the last axis.
"""

from enum import Enum
import math
from typing import Protocol

import numpy as np

from ..errors import InvalidConfigurationError
from .tensor import Tensor


class Activation(Protocol):
    """Interface shared by all activation functions."""

    name: str

    def forward(self, x: Tensor) -> Tensor:
        ...

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        ...


def stable_sigmoid(x: np.ndarray) -> np.ndarray:
    # Split by sign to avoid overflow in exp
    out = np.empty_like(x)
    pos = x >= 0
    out[pos] = 1.0 / (1.0 + np.exp(-x[pos]))
    ex = np.exp(x[~pos])
    out[~pos] = ex / (1.0 + ex)
    return out


class ReLU:
    name = "relu"

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(lambda d: np.maximum(d, 0.0))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad * x.apply(lambda d: (d > 0).astype(np.float64))


class LeakyReLU:
    name = "leaky_relu"

    def __init__(self, alpha: float = 0.01):
        self.alpha = alpha

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(lambda d: np.where(d > 0, d, self.alpha * d))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad * x.apply(lambda d: np.where(d > 0, 1.0, self.alpha))


class ELU:
    name = "elu"

    def __init__(self, alpha: float = 1.0):
        self.alpha = alpha

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(lambda d: np.where(d > 0, d, self.alpha * np.expm1(np.minimum(d, 0.0))))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad * x.apply(lambda d: np.where(d > 0, 1.0, self.alpha * np.exp(np.minimum(d, 0.0))))


class SELU:
    name = "selu"
    alpha = 1.6732632423543772
    scale = 1.0507009873554805

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(
            lambda d: self.scale * np.where(d > 0, d, self.alpha * np.expm1(np.minimum(d, 0.0)))
        )

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad * x.apply(
            lambda d: self.scale * np.where(d > 0, 1.0, self.alpha * np.exp(np.minimum(d, 0.0)))
        )


class Sigmoid:
    name = "sigmoid"

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(stable_sigmoid)

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        s = x.apply(stable_sigmoid)
        return grad * (s * (1.0 - s))


class Tanh:
    name = "tanh"

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(np.tanh)

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad * x.apply(lambda d: 1.0 - np.tanh(d) ** 2)


class Softmax:
    """Row-wise softmax over the last axis."""

    name = "softmax"

    def forward(self, x: Tensor) -> Tensor:
        return Tensor._wrap(softmax(x.to_numpy()))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        s = softmax(x.to_numpy())
        g = grad.to_numpy()
        # Jacobian-vector product: s * (g - <g, s>)
        dot = np.sum(g * s, axis=-1, keepdims=True)
        return Tensor._wrap(s * (g - dot))


class Swish:
    name = "swish"

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(lambda d: d * stable_sigmoid(d))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        def derivative(d: np.ndarray) -> np.ndarray:
            s = stable_sigmoid(d)
            return s + d * s * (1.0 - s)

        return grad * x.apply(derivative)


class GELU:
    """Gaussian error linear unit, tanh approximation."""

    name = "gelu"
    _c = math.sqrt(2.0 / math.pi)

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(lambda d: 0.5 * d * (1.0 + np.tanh(self._c * (d + 0.044715 * d ** 3))))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        def derivative(d: np.ndarray) -> np.ndarray:
            inner = self._c * (d + 0.044715 * d ** 3)
            t = np.tanh(inner)
            d_inner = self._c * (1.0 + 3 * 0.044715 * d ** 2)
            return 0.5 * (1.0 + t) + 0.5 * d * (1.0 - t ** 2) * d_inner

        return grad * x.apply(derivative)


class Softplus:
    name = "softplus"

    def forward(self, x: Tensor) -> Tensor:
        return x.apply(lambda d: np.logaddexp(0.0, d))

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad * x.apply(stable_sigmoid)


class Linear:
    name = "linear"

    def forward(self, x: Tensor) -> Tensor:
        return x.copy()

    def backward(self, x: Tensor, grad: Tensor) -> Tensor:
        return grad.copy()


def softmax(z: np.ndarray) -> np.ndarray:
    """Numerically stable softmax over the last axis."""
    shifted = z - np.max(z, axis=-1, keepdims=True)
    e = np.exp(shifted)
    return e / np.sum(e, axis=-1, keepdims=True)


class ActivationType(Enum):
    """Supported activations."""
    RELU = "relu"
    LEAKY_RELU = "leaky_relu"
    ELU = "elu"
    SELU = "selu"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    SOFTMAX = "softmax"
    SWISH = "swish"
    GELU = "gelu"
    SOFTPLUS = "softplus"
    LINEAR = "linear"

    def create(self) -> Activation:
        return _ACTIVATIONS[self]()


_ACTIVATIONS = {
    ActivationType.RELU: ReLU,
    ActivationType.LEAKY_RELU: LeakyReLU,
    ActivationType.ELU: ELU,
    ActivationType.SELU: SELU,
    ActivationType.SIGMOID: Sigmoid,
    ActivationType.TANH: Tanh,
    ActivationType.SOFTMAX: Softmax,
    ActivationType.SWISH: Swish,
    ActivationType.GELU: GELU,
    ActivationType.SOFTPLUS: Softplus,
    ActivationType.LINEAR: Linear,
}


def get_activation(name) -> Activation:
    """
    Resolve an activation from a name, an ActivationType, or an instance.

    Raises:
        InvalidConfigurationError: For unknown names
    """
    if isinstance(name, ActivationType):
        return name.create()
    if isinstance(name, str):
        key = name.lower().replace("-", "_")
        if key == "leakyrelu":
            key = "leaky_relu"
        try:
            return ActivationType(key).create()
        except ValueError:
            valid = [a.value for a in ActivationType]
            raise InvalidConfigurationError(
                f"Unknown activation: {name}. Must be one of {valid}"
            ) from None
    if hasattr(name, "forward") and hasattr(name, "backward"):
        return name
    raise InvalidConfigurationError(f"Cannot interpret {name!r} as an activation")
