"""
Unit tests for random forests and gradient boosting.
"""

import pytest
import numpy as np

from mlcore.errors import DimensionMismatchError, InvalidConfigurationError, NotFittedError
from mlcore.estimators import GradientBoostingClassifier, RandomForestClassifier, RandomForestRegressor


class TestRandomForestClassifier:
    """Bagged classification trees."""

    def test_separable_blobs(self, two_blobs) -> None:
        """The vote classifies separated blobs perfectly."""
        x, y = two_blobs
        forest = RandomForestClassifier(n_estimators=15, random_state=0).fit(x, y)
        assert len(forest.estimators_) == 15
        assert forest.score(x, y) == 1.0

    def test_probabilities(self, two_blobs) -> None:
        """Per-tree distributions average to valid probabilities."""
        x, y = two_blobs
        proba = RandomForestClassifier(n_estimators=10, random_state=0).fit(x, y).predict_proba(x)
        assert proba.shape == (40, 2)
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)

    def test_seed_is_reproducible(self, two_blobs) -> None:
        """Two fits with one seed grow identical forests."""
        x, y = two_blobs
        a = RandomForestClassifier(n_estimators=5, random_state=42).fit(x, y)
        b = RandomForestClassifier(n_estimators=5, random_state=42).fit(x, y)
        np.testing.assert_array_equal(a.feature_importances_, b.feature_importances_)
        np.testing.assert_array_equal(a.predict_proba(x), b.predict_proba(x))

    def test_oob_score(self, two_blobs) -> None:
        """Out-of-bag accuracy is reported when requested."""
        x, y = two_blobs
        forest = RandomForestClassifier(n_estimators=20, oob_score=True, random_state=0).fit(x, y)
        assert forest.oob_score_ is not None
        assert forest.oob_score_ > 0.9

    @pytest.mark.slow
    def test_generalizes_on_rings(self) -> None:
        """A large forest separates two noisy rings on unseen points."""

        def rings(seed, n):
            rng = np.random.default_rng(seed)
            radius = np.repeat([1.0, 3.0], n) + rng.normal(scale=0.2, size=2 * n)
            angle = rng.uniform(0, 2 * np.pi, size=2 * n)
            x = np.column_stack([radius * np.cos(angle), radius * np.sin(angle)])
            return x, np.repeat([0, 1], n)

        x_train, y_train = rings(0, 200)
        x_test, y_test = rings(1, 100)
        forest = RandomForestClassifier(n_estimators=100, random_state=0).fit(x_train, y_train)
        assert forest.score(x_test, y_test) > 0.95

    def test_string_labels(self) -> None:
        """Labels are returned in their original form."""
        x = np.array([[0.0], [0.1], [1.0], [1.1]])
        forest = RandomForestClassifier(n_estimators=5, bootstrap=False, random_state=0).fit(x, ["no", "no", "yes", "yes"])
        assert forest.predict([[0.05], [1.05]]).tolist() == ["no", "yes"]

    def test_importances_normalized(self, two_blobs) -> None:
        """Forest importances sum to one."""
        x, y = two_blobs
        forest = RandomForestClassifier(n_estimators=5, random_state=0).fit(x, y)
        assert forest.feature_importances_.sum() == pytest.approx(1.0)

    def test_not_fitted(self) -> None:
        """predict before fit raises."""
        with pytest.raises(NotFittedError):
            RandomForestClassifier().predict([[0.0]])

    def test_invalid_configuration(self) -> None:
        """oob needs bootstrapping; at least one tree is required."""
        with pytest.raises(InvalidConfigurationError):
            RandomForestClassifier(bootstrap=False, oob_score=True)
        with pytest.raises(InvalidConfigurationError):
            RandomForestClassifier(n_estimators=0)


class TestRandomForestRegressor:
    """Bagged regression trees."""

    def test_fits_smooth_function(self) -> None:
        """A sine curve is approximated closely."""
        x = np.linspace(0, 6, 120).reshape(-1, 1)
        y = np.sin(x[:, 0])
        forest = RandomForestRegressor(n_estimators=20, oob_score=True, random_state=0).fit(x, y)
        assert forest.score(x, y) > 0.95
        assert forest.oob_score_ > 0.8


class TestGradientBoostingClassifier:
    """Boosted regression trees on softmax residuals."""

    def test_separable_blobs(self, two_blobs) -> None:
        """Boosting classifies separated blobs and lowers the training loss."""
        x, y = two_blobs
        model = GradientBoostingClassifier(n_estimators=20, random_state=0).fit(x, y)
        assert len(model.estimators_) == 20
        assert all(len(trees) == 2 for trees in model.estimators_)
        assert model.score(x, y) == 1.0
        assert model.train_score_.shape == (20,)
        assert model.train_score_[-1] < model.train_score_[0]

    def test_prior_log_odds(self) -> None:
        """Initial scores are the per-class prior log-odds."""
        x = np.arange(40, dtype=float).reshape(-1, 1)
        y = np.array([0] * 30 + [1] * 10)
        model = GradientBoostingClassifier(n_estimators=1, random_state=0).fit(x, y)
        np.testing.assert_allclose(model.init_, [np.log(3.0), -np.log(3.0)])

    def test_multiclass_probabilities(self) -> None:
        """Three string classes; probabilities are a distribution per row."""
        rng = np.random.default_rng(3)
        centers = np.array([[0.0, 0.0], [5.0, 0.0], [0.0, 5.0]])
        x = np.vstack([rng.normal(c, 0.4, size=(15, 2)) for c in centers])
        y = np.repeat(np.array(["a", "b", "c"]), 15)
        model = GradientBoostingClassifier(n_estimators=30, max_depth=2, random_state=1).fit(x, y)
        proba = model.predict_proba(x)
        assert proba.shape == (45, 3)
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)
        assert model.classes_.tolist() == ["a", "b", "c"]
        assert model.score(x, y) == 1.0
        assert model.feature_importances_.sum() == pytest.approx(1.0)

    def test_subsample_is_reproducible(self, two_blobs) -> None:
        """A fixed seed fixes the per-round subsamples."""
        x, y = two_blobs
        first = GradientBoostingClassifier(n_estimators=10, subsample=0.5, random_state=4).fit(x, y)
        second = GradientBoostingClassifier(n_estimators=10, subsample=0.5, random_state=4).fit(x, y)
        np.testing.assert_array_equal(first.predict_proba(x), second.predict_proba(x))
        assert first.score(x, y) == 1.0

    def test_not_fitted(self) -> None:
        """predict before fit raises."""
        with pytest.raises(NotFittedError):
            GradientBoostingClassifier().predict([[0.0]])

    def test_feature_count_checked(self, two_blobs) -> None:
        """Query width must match the training data."""
        x, y = two_blobs
        model = GradientBoostingClassifier(n_estimators=2, random_state=0).fit(x, y)
        with pytest.raises(DimensionMismatchError):
            model.predict([[0.0]])

    @pytest.mark.parametrize("params", [
        {"n_estimators": 0},
        {"learning_rate": 0.0},
        {"subsample": 0.0},
        {"subsample": 1.5},
    ])
    def test_invalid_configuration(self, params) -> None:
        """Out-of-range hyperparameters are rejected."""
        with pytest.raises(InvalidConfigurationError):
            GradientBoostingClassifier(**params)

    def test_single_class(self) -> None:
        """Boosting needs at least two classes."""
        with pytest.raises(InvalidConfigurationError):
            GradientBoostingClassifier().fit([[0.0], [1.0]], [1, 1])
