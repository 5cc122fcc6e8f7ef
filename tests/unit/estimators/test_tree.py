"""
Unit tests for decision tree classifiers and regressors.
"""

import pytest
import numpy as np

from mlcore.errors import DimensionMismatchError, InvalidConfigurationError, NotFittedError
from mlcore.estimators import DecisionTreeClassifier, DecisionTreeRegressor
from mlcore.estimators.tree import resolve_max_features


@pytest.fixture
def eight_points():
    """Two features; the label depends on both."""
    x = np.array([
        [1.0, 1.0], [2.0, 1.0], [3.0, 1.0], [4.0, 1.0],
        [1.0, 2.0], [2.0, 2.0], [3.0, 2.0], [4.0, 2.0],
    ])
    y = np.array([0, 0, 1, 1, 1, 1, 0, 0])
    return x, y


class TestClassifier:
    """Classification trees."""

    @pytest.mark.parametrize("criterion", ["gini", "entropy"])
    def test_fits_training_data(self, eight_points, criterion) -> None:
        """An unlimited tree memorizes the training set."""
        x, y = eight_points
        tree = DecisionTreeClassifier(criterion=criterion).fit(x, y)
        assert tree.score(x, y) == 1.0
        assert all(leaf.is_leaf for leaf in tree.apply(x))

    def test_two_corner_groups(self) -> None:
        """Two separated groups of four points are fit exactly with one split."""
        x = [[0, 0], [0, 1], [1, 0], [1, 1], [5, 5], [5, 6], [6, 5], [6, 6]]
        y = [0, 0, 0, 0, 1, 1, 1, 1]
        tree = DecisionTreeClassifier().fit(x, y)
        assert tree.score(x, y) == 1.0
        assert tree.get_depth() == 1
        assert tree.root_.feature == 0
        assert tree.root_.threshold == 1.0

    def test_max_depth(self, eight_points) -> None:
        """Depth never exceeds the limit."""
        x, y = eight_points
        tree = DecisionTreeClassifier(max_depth=1).fit(x, y)
        assert tree.get_depth() <= 1
        assert tree.get_n_leaves() <= 2

    def test_thresholds_are_observed_values(self, eight_points) -> None:
        """Split thresholds come from the training data, left is <=."""
        x, y = eight_points
        tree = DecisionTreeClassifier().fit(x, y)
        assert tree.root_.threshold in set(x[:, tree.root_.feature].tolist())

    def test_first_split_wins_ties(self) -> None:
        """Equal-gain splits keep the first feature examined."""
        x = np.array([[0.0, 0.0], [1.0, 1.0]])
        tree = DecisionTreeClassifier().fit(x, [0, 1])
        assert tree.root_.feature == 0
        assert tree.root_.threshold == 0.0

    def test_leaf_tie_picks_smallest_label(self) -> None:
        """A leaf split evenly between classes predicts the smaller label."""
        x = np.array([[1.0], [1.0]])
        tree = DecisionTreeClassifier().fit(x, ["b", "a"])
        assert tree.predict([[1.0]]).tolist() == ["a"]
        np.testing.assert_allclose(tree.predict_proba([[1.0]]), [[0.5, 0.5]])

    def test_feature_importances(self, eight_points) -> None:
        """Importances are normalized."""
        x, y = eight_points
        tree = DecisionTreeClassifier().fit(x, y)
        assert tree.feature_importances_.sum() == pytest.approx(1.0)
        assert np.all(tree.feature_importances_ >= 0)

    def test_pure_node_is_leaf(self) -> None:
        """A single-class sample grows no splits."""
        tree = DecisionTreeClassifier().fit([[1.0], [2.0], [3.0]], [7, 7, 7])
        assert tree.root_.is_leaf
        assert tree.predict([[10.0]]).tolist() == [7]

    def test_min_samples_leaf(self, eight_points) -> None:
        """Every leaf keeps at least min_samples_leaf samples."""
        x, y = eight_points
        tree = DecisionTreeClassifier(min_samples_leaf=3).fit(x, y)
        assert all(leaf.n_samples >= 3 for leaf in tree.apply(x))

    def test_export_text(self, eight_points) -> None:
        """The text dump shows splits and leaf classes."""
        x, y = eight_points
        text = DecisionTreeClassifier(max_depth=1).fit(x, y).export_text(feature_names=["a", "b"])
        assert "<=" in text
        assert "class:" in text

    def test_predict_is_idempotent(self, eight_points) -> None:
        """Repeated predictions agree."""
        x, y = eight_points
        tree = DecisionTreeClassifier().fit(x, y)
        np.testing.assert_array_equal(tree.predict(x), tree.predict(x))

    def test_not_fitted(self) -> None:
        """predict before fit raises."""
        with pytest.raises(NotFittedError):
            DecisionTreeClassifier().predict([[1.0]])

    def test_feature_count_checked(self, eight_points) -> None:
        """Prediction input must match the fitted width."""
        x, y = eight_points
        tree = DecisionTreeClassifier().fit(x, y)
        with pytest.raises(DimensionMismatchError):
            tree.predict([[1.0, 2.0, 3.0]])

    def test_invalid_configuration(self) -> None:
        """Bad hyperparameters fail fast."""
        with pytest.raises(InvalidConfigurationError):
            DecisionTreeClassifier(min_samples_split=1)
        with pytest.raises(InvalidConfigurationError):
            DecisionTreeClassifier(criterion="mse")


class TestRegressor:
    """Regression trees."""

    def test_step_function(self) -> None:
        """A single split recovers a step."""
        x = np.arange(10, dtype=float).reshape(-1, 1)
        y = np.where(x[:, 0] < 5, 1.0, 3.0)
        tree = DecisionTreeRegressor(max_depth=1).fit(x, y)
        assert tree.root_.threshold == 4.0
        np.testing.assert_allclose(tree.predict([[0.0], [9.0]]), [1.0, 3.0])

    def test_leaf_mean(self) -> None:
        """Leaves predict the mean of their targets."""
        tree = DecisionTreeRegressor(max_depth=0).fit([[0.0], [1.0], [2.0]], [1.0, 2.0, 6.0])
        assert tree.predict([[5.0]])[0] == pytest.approx(3.0)

    def test_export_text_values(self) -> None:
        """Regressor leaves render their value."""
        tree = DecisionTreeRegressor(max_depth=1).fit([[0.0], [1.0]], [0.0, 1.0])
        assert "value: 1.0000" in tree.export_text()


class TestMaxFeatures:
    """Feature subsampling resolution."""

    @pytest.mark.parametrize("spec,expected", [
        (None, 16), ("sqrt", 4), ("log2", 4), (3, 3), (0.5, 8),
    ])
    def test_resolution(self, spec, expected) -> None:
        """Each form resolves to a feature count."""
        assert resolve_max_features(spec, 16) == expected

    def test_invalid(self) -> None:
        """Unknown strings are rejected."""
        with pytest.raises(InvalidConfigurationError):
            resolve_max_features("half", 16)
