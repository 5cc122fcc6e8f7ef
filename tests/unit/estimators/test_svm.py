"""
Unit tests for support-vector classification and regression.
"""

import pytest
import numpy as np

from mlcore.errors import DimensionMismatchError, InvalidConfigurationError, NotFittedError
from mlcore.estimators import SVC, SVR, OneVsRestSVC


class TestSVC:
    """Binary classification."""

    def test_linear_separable(self, two_blobs) -> None:
        """Every training sample lies on its correct side."""
        x, y = two_blobs
        model = SVC(kernel="linear", random_state=0).fit(x, y)
        signed = np.where(y == 1, 1.0, -1.0) * model.decision_function(x)
        assert np.all(signed > 0)
        assert model.score(x, y) == 1.0

    def test_support_vectors(self, two_blobs) -> None:
        """Only a few samples carry non-zero multipliers, each within C."""
        x, y = two_blobs
        model = SVC(C=10.0, kernel="linear", random_state=0).fit(x, y)
        assert 0 < len(model.support_) < len(x)
        np.testing.assert_array_equal(model.support_vectors_, x[model.support_])
        assert np.all(np.abs(model.dual_coef_) <= model.C + 1e-9)

    def test_narrow_margin_is_separated(self) -> None:
        """The default hard margin separates points only 0.05 apart."""
        x = np.array([[0.0, 0.0], [0.1, 0.0], [0.2, 0.0], [0.3, 0.0], [0.35, 0.0]])
        y = np.array([0, 0, 0, 0, 1])
        model = SVC(random_state=0).fit(x, y)
        assert model.C is None
        signed = np.where(y == 1, 1.0, -1.0) * model.decision_function(x)
        assert np.all(signed > 0)
        assert model.score(x, y) == 1.0
        assert 0.3 < -model.intercept_ / model.coef_[0] < 0.35

    def test_soft_margin_caps_multipliers(self) -> None:
        """A small C bounds every multiplier even if points end up misclassified."""
        x = np.array([[0.0, 0.0], [0.1, 0.0], [0.2, 0.0], [0.3, 0.0], [0.35, 0.0]])
        model = SVC(C=1.0, random_state=0).fit(x, [0, 0, 0, 0, 1])
        assert np.all(np.abs(model.dual_coef_) <= 1.0 + 1e-9)

    def test_linear_coef_matches_decision(self, two_blobs) -> None:
        """The primal weights reproduce the decision function."""
        x, y = two_blobs
        model = SVC(kernel="linear", random_state=0).fit(x, y)
        np.testing.assert_allclose(x @ model.coef_ + model.intercept_, model.decision_function(x))

    def test_rbf_solves_xor(self, xor_data) -> None:
        """A non-linear kernel separates XOR."""
        x, y = xor_data
        model = SVC(kernel="rbf", C=10.0, gamma=1.0, random_state=0).fit(x, y[:, 0])
        assert model.predict(x).tolist() == [0.0, 1.0, 1.0, 0.0]
        with pytest.raises(AttributeError):
            model.coef_

    def test_string_labels(self) -> None:
        """Predictions use the original labels."""
        x = np.array([[0.0], [1.0], [3.0], [4.0]])
        model = SVC(random_state=0).fit(x, ["neg", "neg", "pos", "pos"])
        assert model.predict([[-1.0], [5.0]]).tolist() == ["neg", "pos"]

    def test_multiclass_rejected(self) -> None:
        """SVC is binary only."""
        with pytest.raises(InvalidConfigurationError):
            SVC().fit([[0.0], [1.0], [2.0]], [0, 1, 2])

    def test_not_fitted(self) -> None:
        """decision_function before fit raises."""
        with pytest.raises(NotFittedError):
            SVC().decision_function([[0.0]])

    def test_invalid_configuration(self) -> None:
        """C, kernel and gamma are validated; C=None is allowed."""
        assert SVC(C=None).C is None
        with pytest.raises(InvalidConfigurationError):
            SVC(C=0.0)
        with pytest.raises(InvalidConfigurationError):
            SVC(kernel="cubic")
        with pytest.raises(InvalidConfigurationError):
            SVC(gamma="wide")


class TestOneVsRestSVC:
    """Multiclass wrapper."""

    def test_three_classes(self) -> None:
        """One binary model per class; highest score wins."""
        rng = np.random.default_rng(4)
        centers = np.array([[0.0, 0.0], [6.0, 0.0], [0.0, 6.0]])
        x = np.vstack([c + rng.normal(scale=0.3, size=(10, 2)) for c in centers])
        y = np.repeat([0, 1, 2], 10)
        model = OneVsRestSVC(kernel="linear", random_state=0).fit(x, y)
        assert len(model.estimators_) == 3
        assert model.decision_function(x).shape == (30, 3)
        assert model.score(x, y) == 1.0

    def test_parameters_validated_eagerly(self) -> None:
        """Bad SVC parameters fail at construction."""
        with pytest.raises(InvalidConfigurationError):
            OneVsRestSVC(C=-1.0)


class TestSVR:
    """Epsilon-insensitive regression."""

    def test_linear_trend(self) -> None:
        """A linear kernel recovers slope and intercept."""
        x = np.linspace(0.0, 1.0, 20).reshape(-1, 1)
        y = 2.0 * x[:, 0] + 1.0
        model = SVR(C=10.0, epsilon=0.01, kernel="linear", random_state=0).fit(x, y)
        assert model.score(x, y) > 0.99
        assert model.coef_[0] == pytest.approx(2.0, abs=0.2)

    def test_rbf_fits_sine(self) -> None:
        """An RBF kernel follows a smooth nonlinear target."""
        x = np.linspace(0.0, 2.0 * np.pi, 40).reshape(-1, 1)
        y = np.sin(x[:, 0])
        model = SVR(C=10.0, epsilon=0.05, random_state=0).fit(x, y)
        assert model.score(x, y) > 0.95
        with pytest.raises(AttributeError):
            model.coef_

    def test_targets_inside_tube(self) -> None:
        """Residuals within epsilon leave no support vectors."""
        x = np.linspace(-1.0, 1.0, 10).reshape(-1, 1)
        y = 0.05 * np.sin(3.0 * x[:, 0])
        model = SVR(epsilon=0.1).fit(x, y)
        assert len(model.support_) == 0
        np.testing.assert_allclose(model.predict(x), 0.0)

    def test_wider_tube_fewer_support_vectors(self) -> None:
        """Growing epsilon drops samples from the support set."""
        x = np.linspace(0.0, 2.0 * np.pi, 40).reshape(-1, 1)
        y = np.sin(x[:, 0])
        narrow = SVR(C=10.0, epsilon=0.01, random_state=0).fit(x, y)
        wide = SVR(C=10.0, epsilon=0.3, random_state=0).fit(x, y)
        assert len(wide.support_) < len(narrow.support_)
        assert np.all(np.abs(narrow.dual_coef_) <= 10.0)

    def test_not_fitted(self) -> None:
        """predict before fit raises."""
        with pytest.raises(NotFittedError):
            SVR().predict([[0.0]])

    def test_feature_count_checked(self) -> None:
        """Query width must match the training data."""
        model = SVR(kernel="linear").fit([[0.0], [1.0], [2.0]], [0.0, 1.0, 2.0])
        with pytest.raises(DimensionMismatchError):
            model.predict([[0.0, 1.0]])

    @pytest.mark.parametrize("params", [
        {"C": 0.0},
        {"epsilon": -0.1},
        {"kernel": "cubic"},
        {"gamma": -1.0},
    ])
    def test_invalid_configuration(self, params) -> None:
        """Out-of-range hyperparameters are rejected."""
        with pytest.raises(InvalidConfigurationError):
            SVR(**params)
