"""
Unit tests for activation functions.
"""

import pytest
import numpy as np

from mlcore.core.activations import (
    ActivationType,
    LeakyReLU,
    ReLU,
    Sigmoid,
    Softmax,
    get_activation,
)
from mlcore.core.tensor import Tensor
from mlcore.errors import InvalidConfigurationError


POINTS = Tensor([2, 3], [-1.5, -0.3, 0.2, 0.7, 1.1, 2.4])


def numeric_backward(activation, x: Tensor, grad: Tensor, h: float = 1e-6) -> np.ndarray:
    """Finite-difference vector-Jacobian product of activation.forward."""
    result = np.zeros(x.count)
    for i in range(x.count):
        plus = x.copy()
        minus = x.copy()
        plus.data[i] += h
        minus.data[i] -= h
        diff = activation.forward(plus).data - activation.forward(minus).data
        result[i] = np.dot(diff, grad.data) / (2 * h)
    return result


@pytest.mark.parametrize("activation_type", list(ActivationType))
def test_backward_matches_finite_differences(activation_type):
    """Every activation's backward is the derivative of its forward."""
    activation = activation_type.create()
    grad = Tensor([2, 3], [0.3, -1.0, 0.5, 1.2, 0.1, -0.4])
    analytic = activation.backward(POINTS, grad).data
    np.testing.assert_allclose(analytic, numeric_backward(activation, POINTS, grad), atol=1e-5)


def test_relu_zeroes_negatives():
    """ReLU clamps at zero."""
    assert ReLU().forward(Tensor([3], [-1, 0, 2])).to_list() == [0.0, 0.0, 2.0]


def test_leaky_relu_alpha():
    """LeakyReLU scales negatives by alpha."""
    out = LeakyReLU(alpha=0.1).forward(Tensor([2], [-2.0, 3.0]))
    np.testing.assert_allclose(out.data, [-0.2, 3.0])


def test_sigmoid_is_stable_at_extremes():
    """Sigmoid saturates without overflow."""
    out = Sigmoid().forward(Tensor([3], [-1000.0, 0.0, 1000.0]))
    np.testing.assert_allclose(out.data, [0.0, 0.5, 1.0])


def test_softmax_rows_sum_to_one():
    """Softmax is applied per row."""
    out = Softmax().forward(Tensor([2, 3], [1, 2, 3, 1000, 1000, 1000]))
    np.testing.assert_allclose(out.sum(axis=1).data, [1.0, 1.0])
    np.testing.assert_allclose(out.row(1).data, [1 / 3] * 3)


class TestGetActivation:
    """Activation resolution."""

    def test_names(self) -> None:
        """Names are case-insensitive and accept dashes."""
        assert isinstance(get_activation("ReLU"), ReLU)
        assert isinstance(get_activation("leaky-relu"), LeakyReLU)
        assert isinstance(get_activation("leakyrelu"), LeakyReLU)

    def test_instance_passthrough(self) -> None:
        """Configured instances are returned unchanged."""
        activation = LeakyReLU(alpha=0.3)
        assert get_activation(activation) is activation

    def test_unknown(self) -> None:
        """Unknown names raise."""
        with pytest.raises(InvalidConfigurationError):
            get_activation("mish")
