"""
Unit tests for the sequential Network.

Tests cover the build/compile/train lifecycle, divergence handling,
callbacks, gradient accumulation and weight persistence.
"""

import json
from pathlib import Path

import pytest
import numpy as np

from mlcore.core.config import load_experiment_config
from mlcore.core.optimizers import SGD
from mlcore.core.schedulers import StepDecayScheduler
from mlcore.core.tensor import Tensor
from mlcore.errors import (
    DimensionMismatchError,
    DivergenceError,
    InvalidConfigurationError,
    NotCompiledError,
)
from mlcore.neural import EarlyStopping, Network, NetworkState
from mlcore.neural.network import to_class_labels

CONFIGS_DIR = Path(__file__).parent.parent.parent.parent / "configs"


def xor_network(seed: int = 0) -> Network:
    net = Network(name="xor", random_state=seed)
    net.dense(2, 8, activation="tanh").dense(8, 1, activation="sigmoid")
    return net.compile(optimizer="adam", loss="bce", learning_rate=0.1)


def linear_data():
    x = np.linspace(-1, 1, 20).reshape(-1, 1)
    return x, 2.0 * x + 1.0


class TestLifecycle:
    """State transitions."""

    def test_states(self, xor_data) -> None:
        """UNBUILT -> BUILT -> COMPILED -> TRAINED."""
        x, y = xor_data
        net = Network(random_state=0)
        assert net.state == NetworkState.UNBUILT
        net.dense(2, 1, activation="sigmoid")
        assert net.state == NetworkState.BUILT
        net.compile(loss="mse")
        assert net.state == NetworkState.COMPILED
        net.train(x, y, epochs=1, verbose=False)
        assert net.state == NetworkState.TRAINED

    def test_compile_empty_network(self) -> None:
        """An empty network cannot be compiled."""
        with pytest.raises(InvalidConfigurationError):
            Network().compile()

    def test_predict_requires_compile(self) -> None:
        """Predicting before compile raises."""
        net = Network(random_state=0).dense(2, 1)
        with pytest.raises(NotCompiledError):
            net.predict([[0.0, 1.0]])

    def test_learning_rate_override(self) -> None:
        """compile's learning_rate is applied to the optimizer."""
        net = Network(random_state=0).dense(2, 1).compile(optimizer="sgd", learning_rate=0.3)
        assert net.optimizer.learning_rate == 0.3

    def test_learning_rate_override_validated(self) -> None:
        """A non-positive override is rejected for named and instance optimizers."""
        with pytest.raises(InvalidConfigurationError):
            Network().dense(2, 1).compile(optimizer=SGD(), loss="mse", learning_rate=-0.5)
        with pytest.raises(InvalidConfigurationError):
            Network().dense(2, 1).compile(optimizer="adam", loss="mse", learning_rate=0.0)


class TestTraining:
    """Fitting behaviour."""

    def test_learns_xor(self, xor_data) -> None:
        """A small tanh network separates XOR."""
        x, y = xor_data
        net = xor_network()
        history = net.train(x, y, epochs=1000, batch_size=4, verbose=False)
        loss, accuracy = net.evaluate(x, y)
        assert accuracy == 1.0
        assert loss < history.loss[0]
        assert len(history.accuracy) == history.epochs == 1000

    def test_learns_linear_regression(self) -> None:
        """A single dense unit recovers slope and intercept."""
        x, y = linear_data()
        net = Network(random_state=1).dense(1, 1).compile(optimizer="sgd", loss="mse", learning_rate=0.1)
        history = net.train(x, y, epochs=300, batch_size=20, verbose=False)
        assert history.accuracy is None
        np.testing.assert_allclose(net.layers[0].weights.data, [2.0], atol=1e-2)
        np.testing.assert_allclose(net.layers[0].bias.data, [1.0], atol=1e-2)

    def test_predict_is_idempotent(self, xor_data) -> None:
        """Prediction does not change the network."""
        x, y = xor_data
        net = xor_network()
        net.train(x, y, epochs=5, verbose=False)
        first = net.predict(x)
        assert net.predict(x).allclose(first)

    def test_validation_split(self) -> None:
        """Held-out samples produce val metrics every epoch."""
        x, y = linear_data()
        net = Network(random_state=0).dense(1, 1).compile(loss="mse")
        history = net.train(x, y, epochs=3, validation_split=0.25, verbose=False)
        assert len(history.val_loss) == 3
        assert "val_loss" in history.to_dict()

    def test_seeded_training_is_reproducible(self, xor_data) -> None:
        """Same seed, same data, same history."""
        x, y = xor_data
        first = xor_network(seed=3).train(x, y, epochs=20, verbose=False)
        second = xor_network(seed=3).train(x, y, epochs=20, verbose=False)
        assert first.loss == second.loss

    def test_scheduler_sets_rate_per_epoch(self, xor_data) -> None:
        """The scheduler's rate is recorded in the history."""
        x, y = xor_data
        net = xor_network()
        history = net.train(
            x, y, epochs=4, verbose=False, scheduler=StepDecayScheduler(base_lr=0.1, step_size=2, gamma=0.5)
        )
        assert history.learning_rate == pytest.approx([0.1, 0.1, 0.05, 0.05])

    def test_scheduler_rate_validated(self, xor_data) -> None:
        """A scheduler that produces a zero rate stops training with an error."""

        class DropToZero:
            def get_lr(self, epoch: int) -> float:
                return 0.1 if epoch == 0 else 0.0

        x, y = xor_data
        with pytest.raises(InvalidConfigurationError):
            xor_network().train(x, y, epochs=3, verbose=False, scheduler=DropToZero())

    def test_early_stopping_ends_training(self, xor_data) -> None:
        """A callback can stop training early."""
        x, y = xor_data
        net = xor_network()
        stopper = EarlyStopping(monitor="loss", patience=3, min_delta=1e9)
        history = net.train(x, y, epochs=50, verbose=False, callbacks=[stopper])
        assert history.epochs == 4
        assert net.state == NetworkState.TRAINED

    def test_gradient_accumulation_matches_full_batch(self) -> None:
        """Two accumulated half-batches equal one full batch."""
        x = np.array([[0.0, 1.0], [1.0, 0.0], [1.0, 1.0], [2.0, 0.5]])
        y = np.array([[1.0], [0.0], [2.0], [1.5]])

        full = Network(random_state=4).dense(2, 1).compile(optimizer="sgd", loss="mse", learning_rate=0.1)
        full.train(x, y, epochs=1, batch_size=4, shuffle=False, verbose=False)

        accumulated = Network(random_state=4).dense(2, 1).compile(
            optimizer="sgd", loss="mse", learning_rate=0.1, accumulation_steps=2
        )
        accumulated.train(x, y, epochs=1, batch_size=2, shuffle=False, verbose=False)

        for a, b in zip(full.get_weights(), accumulated.get_weights()):
            assert a.allclose(b)


class TestFailures:
    """Error handling."""

    def test_divergence_marks_network_failed(self) -> None:
        """A non-finite loss raises and leaves the network FAILED."""
        net = Network(random_state=0).dense(1, 1).compile(loss="mse")
        x = np.array([[1.0], [np.nan]])
        y = np.array([[1.0], [2.0]])
        with pytest.raises(DivergenceError):
            net.train(x, y, epochs=1, verbose=False)
        assert net.state == NetworkState.FAILED

        with pytest.raises(DivergenceError):
            net.train(np.ones((2, 1)), y, epochs=1, verbose=False)

        net.reset_state()
        assert net.state == NetworkState.COMPILED
        net.train(np.ones((2, 1)), y, epochs=1, verbose=False)

    def test_layer_chain_mismatch(self) -> None:
        """Incompatible layer widths surface at the first forward pass."""
        net = Network(random_state=0).dense(3, 4).dense(5, 1).compile(loss="mse")
        with pytest.raises(DimensionMismatchError):
            net.predict(np.zeros((2, 3)))

    def test_input_width_mismatch(self, xor_data) -> None:
        """Inputs must have the declared feature count."""
        net = xor_network()
        with pytest.raises(DimensionMismatchError):
            net.predict(np.zeros((2, 3)))

    def test_sample_count_mismatch(self) -> None:
        """x and y must have the same number of rows."""
        net = Network(random_state=0).dense(1, 1).compile(loss="mse")
        with pytest.raises(DimensionMismatchError):
            net.train(np.zeros((3, 1)), np.zeros((2, 1)), epochs=1, verbose=False)


class TestPersistence:
    """Weights and introspection."""

    def test_parameter_count_and_summary(self) -> None:
        """Counts include weights and biases."""
        net = xor_network()
        assert net.parameter_count() == 2 * 8 + 8 + 8 * 1 + 1
        assert "Total params: 33" in net.summary()

    def test_state_dict_round_trip(self, xor_data) -> None:
        """A state dict restores identical predictions and is JSON-safe."""
        x, y = xor_data
        source = xor_network(seed=0)
        source.train(x, y, epochs=10, verbose=False)
        state = json.loads(json.dumps(source.state_dict()))

        target = xor_network(seed=99)
        target.load_state_dict(state)
        assert target.predict(x).allclose(source.predict(x))

    def test_state_dict_includes_batch_norm_stats(self, xor_data) -> None:
        """Running statistics survive a state dict round trip."""
        x, y = xor_data
        source = Network(random_state=0).dense(2, 3).batch_norm(3).dense(3, 1).compile(loss="mse")
        source.train(x, y, epochs=3, verbose=False)
        target = Network(random_state=1).dense(2, 3).batch_norm(3).dense(3, 1).compile(loss="mse")
        target.load_state_dict(source.state_dict())
        assert target.layers[1].running_mean.allclose(source.layers[1].running_mean)
        assert target.predict(x).allclose(source.predict(x))

    def test_set_weights_count(self) -> None:
        """set_weights needs one tensor per parameter."""
        with pytest.raises(DimensionMismatchError):
            xor_network().set_weights([Tensor.zeros([2, 8])])

    def test_from_config(self) -> None:
        """The XOR experiment builds a compiled two-layer network."""
        config = load_experiment_config(str(CONFIGS_DIR / "xor.yaml"))
        net = Network.from_config(config)
        assert net.state == NetworkState.COMPILED
        assert net.loss.name == "bce"
        assert net.parameter_count() == 33


class TestClassLabels:
    """Output-to-label conversion."""

    def test_multi_column_uses_argmax(self) -> None:
        """Several outputs pick the largest."""
        values = np.array([[0.1, 0.7, 0.2], [0.5, 0.2, 0.3]])
        assert to_class_labels("categorical_crossentropy", values).tolist() == [1, 0]

    def test_probability_threshold(self) -> None:
        """Probabilities threshold at 0.5."""
        assert to_class_labels("bce", np.array([[0.5], [0.49]])).tolist() == [1, 0]

    def test_score_threshold(self) -> None:
        """Raw scores threshold at zero."""
        assert to_class_labels("hinge", np.array([[0.2], [-0.1], [0.0]])).tolist() == [1, 0, 0]
