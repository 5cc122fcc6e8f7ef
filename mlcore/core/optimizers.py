"""
Gradient-based optimizers.

Each optimizer is defined by a pure per-parameter update rule

    (value, grad, state, hyperparameters) -> (new_value, new_state)

Optimizer objects only hold the running state for each parameter slot and
return fresh parameter arrays; they never mutate the arrays they are given.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..errors import DimensionMismatchError, InvalidConfigurationError
from .tensor import Tensor


# ----------------------------------------------------------------------
# Update rules
# ----------------------------------------------------------------------

@dataclass
class SGDState:
    velocity: Optional[np.ndarray] = None


@dataclass
class AdamState:
    m: Optional[np.ndarray] = None  # First moment
    v: Optional[np.ndarray] = None  # Second moment
    v_max: Optional[np.ndarray] = None  # AMSGrad running max
    t: int = 0


@dataclass
class RMSpropState:
    square_avg: Optional[np.ndarray] = None
    momentum_buffer: Optional[np.ndarray] = None


@dataclass
class AdagradState:
    sum_squares: Optional[np.ndarray] = None


def sgd_update(
    value: np.ndarray,
    grad: np.ndarray,
    state: SGDState,
    lr: float,
    momentum: float = 0.0,
    nesterov: bool = False,
    weight_decay: float = 0.0,
) -> Tuple[np.ndarray, SGDState]:
    """SGD with optional (Nesterov) momentum and L2 weight decay."""
    if weight_decay > 0:
        grad = grad + weight_decay * value

    if momentum <= 0:
        return value - lr * grad, state

    velocity = state.velocity if state.velocity is not None else np.zeros_like(value)
    velocity = momentum * velocity + grad
    step = grad + momentum * velocity if nesterov else velocity
    return value - lr * step, SGDState(velocity=velocity)


def adam_update(
    value: np.ndarray,
    grad: np.ndarray,
    state: AdamState,
    lr: float,
    beta1: float = 0.9,
    beta2: float = 0.999,
    epsilon: float = 1e-8,
    weight_decay: float = 0.0,
    amsgrad: bool = False,
    decoupled: bool = False,
) -> Tuple[np.ndarray, AdamState]:
    """
    Adam with bias-corrected moments.

    decoupled=True applies weight decay directly to the weights (AdamW)
    instead of folding it into the gradient.
    """
    if weight_decay > 0 and not decoupled:
        grad = grad + weight_decay * value

    m = state.m if state.m is not None else np.zeros_like(value)
    v = state.v if state.v is not None else np.zeros_like(value)
    t = state.t + 1

    m = beta1 * m + (1.0 - beta1) * grad
    v = beta2 * v + (1.0 - beta2) * grad * grad
    m_hat = m / (1.0 - beta1 ** t)
    v_hat = v / (1.0 - beta2 ** t)

    v_max = state.v_max
    if amsgrad:
        v_max = v_hat if v_max is None else np.maximum(v_max, v_hat)
        v_hat = v_max

    new_value = value - lr * m_hat / (np.sqrt(v_hat) + epsilon)
    if weight_decay > 0 and decoupled:
        new_value = new_value - lr * weight_decay * value
    return new_value, AdamState(m=m, v=v, v_max=v_max, t=t)


def rmsprop_update(
    value: np.ndarray,
    grad: np.ndarray,
    state: RMSpropState,
    lr: float,
    alpha: float = 0.99,
    epsilon: float = 1e-8,
    momentum: float = 0.0,
    weight_decay: float = 0.0,
) -> Tuple[np.ndarray, RMSpropState]:
    if weight_decay > 0:
        grad = grad + weight_decay * value

    square_avg = state.square_avg if state.square_avg is not None else np.zeros_like(value)
    square_avg = alpha * square_avg + (1.0 - alpha) * grad * grad
    step = grad / (np.sqrt(square_avg) + epsilon)

    buffer = state.momentum_buffer
    if momentum > 0:
        buffer = step if buffer is None else momentum * buffer + step
        step = buffer
    return value - lr * step, RMSpropState(square_avg=square_avg, momentum_buffer=buffer)


def adagrad_update(
    value: np.ndarray,
    grad: np.ndarray,
    state: AdagradState,
    lr: float,
    epsilon: float = 1e-10,
    weight_decay: float = 0.0,
) -> Tuple[np.ndarray, AdagradState]:
    if weight_decay > 0:
        grad = grad + weight_decay * value

    sum_squares = state.sum_squares if state.sum_squares is not None else np.zeros_like(value)
    sum_squares = sum_squares + grad * grad
    return value - lr * grad / (np.sqrt(sum_squares) + epsilon), AdagradState(sum_squares=sum_squares)


# ----------------------------------------------------------------------
# Optimizers
# ----------------------------------------------------------------------

class Optimizer:
    """
    Applies an update rule to a list of parameters.

    State is kept per parameter slot (position in the list), so the caller
    must pass parameters in the same order on every step.
    """

    name = "optimizer"

    def __init__(self, learning_rate: float):
        self.learning_rate = learning_rate
        self._states: Dict[int, object] = {}
        self.iterations = 0

    @property
    def learning_rate(self) -> float:
        return self._learning_rate

    @learning_rate.setter
    def learning_rate(self, value: float) -> None:
        if not value > 0:
            raise InvalidConfigurationError(f"learning_rate must be positive, got {value}")
        self._learning_rate = value

    def _initial_state(self):
        raise NotImplementedError

    def _update(self, value: np.ndarray, grad: np.ndarray, state) -> Tuple[np.ndarray, object]:
        raise NotImplementedError

    def step(self, parameters: List[Tensor], gradients: List[Tensor]) -> List[Tensor]:
        """
        Compute updated parameters.

        Args:
            parameters: Current parameter tensors
            gradients: Gradients matching parameters one-to-one

        Returns:
            New parameter tensors (inputs are left untouched)
        """
        if len(parameters) != len(gradients):
            raise DimensionMismatchError(
                f"Got {len(parameters)} parameters but {len(gradients)} gradients"
            )
        updated = []
        for slot, (param, grad) in enumerate(zip(parameters, gradients)):
            if param.shape != grad.shape:
                raise DimensionMismatchError(
                    f"Parameter {slot} has shape {param.shape} but gradient has {grad.shape}"
                )
            state = self._states.get(slot) or self._initial_state()
            new_value, self._states[slot] = self._update(param.data, grad.data, state)
            updated.append(Tensor(param.shape, new_value))
        self.iterations += 1
        return updated

    def reset(self) -> None:
        """Drop all running moment state."""
        self._states = {}
        self.iterations = 0

    def get_config(self) -> Dict[str, float]:
        return {"name": self.name, "learning_rate": self.learning_rate}


class SGD(Optimizer):
    name = "sgd"

    def __init__(
        self,
        learning_rate: float = 0.01,
        momentum: float = 0.0,
        nesterov: bool = False,
        weight_decay: float = 0.0,
    ):
        super().__init__(learning_rate)
        if not 0 <= momentum < 1:
            raise InvalidConfigurationError("momentum must be in [0, 1)")
        self.momentum = momentum
        self.nesterov = nesterov
        self.weight_decay = weight_decay

    def _initial_state(self):
        return SGDState()

    def _update(self, value, grad, state):
        return sgd_update(
            value, grad, state, self.learning_rate,
            momentum=self.momentum, nesterov=self.nesterov, weight_decay=self.weight_decay,
        )


class Adam(Optimizer):
    name = "adam"
    decoupled = False

    def __init__(
        self,
        learning_rate: float = 0.001,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-8,
        weight_decay: float = 0.0,
        amsgrad: bool = False,
    ):
        super().__init__(learning_rate)
        if not (0 <= beta1 < 1 and 0 <= beta2 < 1):
            raise InvalidConfigurationError("beta1 and beta2 must be in [0, 1)")
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon
        self.weight_decay = weight_decay
        self.amsgrad = amsgrad

    def _initial_state(self):
        return AdamState()

    def _update(self, value, grad, state):
        return adam_update(
            value, grad, state, self.learning_rate,
            beta1=self.beta1, beta2=self.beta2, epsilon=self.epsilon,
            weight_decay=self.weight_decay, amsgrad=self.amsgrad, decoupled=self.decoupled,
        )


class AdamW(Adam):
    name = "adamw"
    decoupled = True

    def __init__(self, learning_rate: float = 0.001, weight_decay: float = 0.01, **kwargs):
        super().__init__(learning_rate, weight_decay=weight_decay, **kwargs)


class RMSprop(Optimizer):
    name = "rmsprop"

    def __init__(
        self,
        learning_rate: float = 0.01,
        alpha: float = 0.99,
        epsilon: float = 1e-8,
        momentum: float = 0.0,
        weight_decay: float = 0.0,
    ):
        super().__init__(learning_rate)
        self.alpha = alpha
        self.epsilon = epsilon
        self.momentum = momentum
        self.weight_decay = weight_decay

    def _initial_state(self):
        return RMSpropState()

    def _update(self, value, grad, state):
        return rmsprop_update(
            value, grad, state, self.learning_rate,
            alpha=self.alpha, epsilon=self.epsilon,
            momentum=self.momentum, weight_decay=self.weight_decay,
        )


class Adagrad(Optimizer):
    name = "adagrad"

    def __init__(self, learning_rate: float = 0.01, epsilon: float = 1e-10, weight_decay: float = 0.0):
        super().__init__(learning_rate)
        self.epsilon = epsilon
        self.weight_decay = weight_decay

    def _initial_state(self):
        return AdagradState()

    def _update(self, value, grad, state):
        return adagrad_update(
            value, grad, state, self.learning_rate,
            epsilon=self.epsilon, weight_decay=self.weight_decay,
        )


class OptimizerType(Enum):
    """Optimizer choices accepted by Network.compile."""
    SGD = "sgd"
    ADAM = "adam"
    ADAMW = "adamw"
    RMSPROP = "rmsprop"
    ADAGRAD = "adagrad"

    def create(self, learning_rate: Optional[float] = None) -> Optimizer:
        cls = _OPTIMIZERS[self]
        return cls() if learning_rate is None else cls(learning_rate=learning_rate)


_OPTIMIZERS = {
    OptimizerType.SGD: SGD,
    OptimizerType.ADAM: Adam,
    OptimizerType.ADAMW: AdamW,
    OptimizerType.RMSPROP: RMSprop,
    OptimizerType.ADAGRAD: Adagrad,
}


def get_optimizer(optimizer, learning_rate: Optional[float] = None) -> Optimizer:
    """
    Resolve an optimizer from a name, an OptimizerType, or an instance.

    Raises:
        InvalidConfigurationError: For unknown names or a non-positive rate
    """
    if isinstance(optimizer, Optimizer):
        return optimizer
    if isinstance(optimizer, OptimizerType):
        return optimizer.create(learning_rate)
    if isinstance(optimizer, str):
        try:
            return OptimizerType(optimizer.lower()).create(learning_rate)
        except ValueError:
            valid = [t.value for t in OptimizerType]
            raise InvalidConfigurationError(
                f"Unknown optimizer: {optimizer}. Must be one of {valid}"
            ) from None
    raise InvalidConfigurationError(f"Cannot interpret {optimizer!r} as an optimizer")
