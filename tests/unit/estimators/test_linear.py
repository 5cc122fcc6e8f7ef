"""
Unit tests for the linear regression family.
"""

import pytest
import numpy as np

from mlcore.errors import DimensionMismatchError, DivergenceError, InvalidConfigurationError, NotFittedError
from mlcore.estimators import ElasticNet, LassoRegression, LinearRegression, RidgeRegression


@pytest.fixture
def linear_data():
    """y = 3*x0 - 2*x1 + 1 with a little noise."""
    rng = np.random.default_rng(0)
    x = rng.normal(size=(200, 2))
    y = 3.0 * x[:, 0] - 2.0 * x[:, 1] + 1.0 + rng.normal(scale=0.01, size=200)
    return x, y


class TestLinearRegression:
    """Least squares fits."""

    def test_ols_recovers_coefficients(self, linear_data) -> None:
        """Normal equations find the generating weights."""
        x, y = linear_data
        model = LinearRegression().fit(x, y)
        np.testing.assert_allclose(model.coef_, [3.0, -2.0], atol=0.01)
        assert model.intercept_ == pytest.approx(1.0, abs=0.01)
        assert model.score(x, y) > 0.999

    @pytest.mark.parametrize("method", ["gd", "sgd"])
    def test_gradient_descent_matches_ols(self, linear_data, method) -> None:
        """Iterative fits converge to the same solution."""
        x, y = linear_data
        model = LinearRegression(fit_method=method, learning_rate=0.05, epochs=300, random_state=0).fit(x, y)
        np.testing.assert_allclose(model.coef_, [3.0, -2.0], atol=0.05)
        assert len(model.loss_history_) == 300
        assert model.loss_history_[-1] < model.loss_history_[0]

    def test_without_intercept(self) -> None:
        """fit_intercept=False forces the line through the origin."""
        x = np.array([[1.0], [2.0], [3.0]])
        model = LinearRegression(fit_intercept=False).fit(x, [2.0, 4.0, 6.0])
        assert model.intercept_ == 0.0
        assert model.coef_[0] == pytest.approx(2.0)

    def test_divergence_raises(self, linear_data) -> None:
        """A huge learning rate ends in DivergenceError, not NaN weights."""
        x, y = linear_data
        with pytest.raises(DivergenceError):
            LinearRegression(fit_method="gd", learning_rate=1e6, epochs=500).fit(x * 1e3, y)

    def test_predict_before_fit(self) -> None:
        """Unfitted models refuse to predict."""
        with pytest.raises(NotFittedError):
            LinearRegression().predict([[1.0]])

    def test_feature_count_checked(self, linear_data) -> None:
        """Prediction input must match the fitted width."""
        x, y = linear_data
        model = LinearRegression().fit(x, y)
        with pytest.raises(DimensionMismatchError):
            model.predict(np.ones((2, 3)))

    def test_invalid_configuration(self) -> None:
        """Bad constructor arguments fail fast."""
        with pytest.raises(InvalidConfigurationError):
            LinearRegression(fit_method="newton")
        with pytest.raises(InvalidConfigurationError):
            LinearRegression(learning_rate=0.0)

    def test_get_params_and_repr(self) -> None:
        """Constructor arguments are introspectable."""
        model = LinearRegression(fit_method="gd", epochs=10)
        params = model.get_params()
        assert params["fit_method"] == "gd"
        assert params["epochs"] == 10
        assert repr(model).startswith("LinearRegression(fit_method='gd'")


class TestRegularized:
    """Ridge, lasso and elastic net."""

    def test_ridge_shrinks(self, linear_data) -> None:
        """A larger alpha gives a smaller coefficient norm."""
        x, y = linear_data
        weak = RidgeRegression(alpha=0.1).fit(x, y)
        strong = RidgeRegression(alpha=1000.0).fit(x, y)
        assert np.linalg.norm(strong.coef_) < np.linalg.norm(weak.coef_)

    def test_ridge_zero_alpha_is_ols(self, linear_data) -> None:
        """alpha=0 reproduces ordinary least squares."""
        x, y = linear_data
        np.testing.assert_allclose(
            RidgeRegression(alpha=0.0).fit(x, y).coef_, LinearRegression().fit(x, y).coef_
        )

    def test_lasso_sparsity(self) -> None:
        """Irrelevant features get exactly zero weight."""
        rng = np.random.default_rng(1)
        x = rng.normal(size=(100, 5))
        y = 4.0 * x[:, 0] + rng.normal(scale=0.1, size=100)
        model = LassoRegression(alpha=0.5).fit(x, y)
        assert model.coef_[0] > 3.0
        np.testing.assert_array_equal(model.coef_[1:], 0.0)
        assert model.n_iter_ >= 1

    def test_elastic_net_between_extremes(self, linear_data) -> None:
        """Elastic net coefficients are shrunk but non-zero."""
        x, y = linear_data
        model = ElasticNet(alpha=0.1, l1_ratio=0.5).fit(x, y)
        assert 0.0 < abs(model.coef_[0]) < 3.0
        assert model.score(x, y) > 0.95

    def test_invalid_l1_ratio(self) -> None:
        """l1_ratio must lie in [0, 1]."""
        with pytest.raises(InvalidConfigurationError):
            ElasticNet(l1_ratio=1.5)
