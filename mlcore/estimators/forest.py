"""
Tree ensembles: random forests (bagged decision trees with per-split
feature subsampling) and gradient-boosted classification.
"""

from typing import Any, List, Optional
import logging

import numpy as np

from ..core.activations import softmax
from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features, check_xy
from ..errors import InvalidConfigurationError
from ..evaluation.metrics import accuracy_score, r2_score
from ..infrastructure.reproducibility import RandomState, make_rng, spawn_seeds
from .base import BaseEstimator, ClassifierMixin, RegressorMixin
from .tree import DecisionTreeClassifier, DecisionTreeRegressor, MaxFeatures

logger = logging.getLogger(__name__)


class _BaseForest(BaseEstimator):
    def __init__(
        self,
        n_estimators: int,
        criterion: str,
        max_depth: Optional[int],
        min_samples_split: int,
        min_samples_leaf: int,
        max_features: MaxFeatures,
        bootstrap: bool,
        oob_score: bool,
        random_state: RandomState,
    ):
        if n_estimators < 1:
            raise InvalidConfigurationError("n_estimators must be >= 1")
        if oob_score and not bootstrap:
            raise InvalidConfigurationError("oob_score requires bootstrap=True")
        self.n_estimators = n_estimators
        self.criterion = criterion
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.max_features = max_features
        self.bootstrap = bootstrap
        self.oob_score = oob_score
        self.random_state = random_state
        self.estimators_: Optional[list] = None
        self.feature_importances_: Optional[np.ndarray] = None
        self.n_features_in_: Optional[int] = None
        self.oob_score_: Optional[float] = None

    def _make_tree(self, seed: int):
        raise NotImplementedError

    def _fit_tree(self, tree, x: np.ndarray, y: np.ndarray) -> None:
        raise NotImplementedError

    def _fit_trees(self, data: np.ndarray, target: np.ndarray) -> List[np.ndarray]:
        """Fit every tree; returns the in-bag indices of each."""
        rng = make_rng(self.random_state)
        n_samples = len(data)
        seeds = spawn_seeds(rng, self.n_estimators)
        self.estimators_ = []
        in_bag = []
        for seed in seeds:
            tree_rng = make_rng(seed)
            if self.bootstrap:
                idx = tree_rng.integers(0, n_samples, size=n_samples)
            else:
                idx = np.arange(n_samples)
            tree = self._make_tree(int(tree_rng.integers(0, 2**31 - 1)))
            self._fit_tree(tree, data[idx], target[idx])
            self.estimators_.append(tree)
            in_bag.append(idx)

        self.n_features_in_ = data.shape[1]
        importances = np.mean([t.feature_importances_ for t in self.estimators_], axis=0)
        total = importances.sum()
        self.feature_importances_ = importances / total if total > 0 else importances
        logger.debug(
            f"{type(self).__name__} fit {self.n_estimators} trees, "
            f"mean depth {np.mean([t.get_depth() for t in self.estimators_]):.1f}"
        )
        return in_bag

    @staticmethod
    def _oob_masks(in_bag: List[np.ndarray], n_samples: int) -> List[np.ndarray]:
        masks = []
        for idx in in_bag:
            mask = np.ones(n_samples, dtype=bool)
            mask[idx] = False
            masks.append(mask)
        return masks

    def _check_input(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["estimators_"])
        data = as_2d_array(x)
        check_n_features(data, self.n_features_in_, type(self).__name__)
        return data


class RandomForestClassifier(_BaseForest, ClassifierMixin):
    """
    Majority vote over bootstrap-trained classification trees.

    Args:
        n_estimators: Number of trees
        criterion: "gini" or "entropy"
        max_depth: Depth limit per tree
        min_samples_split: Minimum samples to attempt a split
        min_samples_leaf: Minimum samples in each child
        max_features: Features examined per split ("sqrt", "log2", int,
            fraction, or None for all)
        bootstrap: Resample the training set per tree
        oob_score: Compute out-of-bag accuracy into oob_score_
        random_state: Seed for bootstraps and feature subsets
    """

    def __init__(
        self,
        n_estimators: int = 100,
        criterion: str = "gini",
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        max_features: MaxFeatures = "sqrt",
        bootstrap: bool = True,
        oob_score: bool = False,
        random_state: RandomState = None,
    ):
        super().__init__(
            n_estimators, criterion, max_depth, min_samples_split, min_samples_leaf,
            max_features, bootstrap, oob_score, random_state,
        )
        self.classes_: Optional[np.ndarray] = None

    def _make_tree(self, seed: int) -> DecisionTreeClassifier:
        return DecisionTreeClassifier(
            criterion=self.criterion,
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            max_features=self.max_features,
            random_state=seed,
        )

    def _fit_tree(self, tree, x: np.ndarray, y: np.ndarray) -> None:
        # Every tree sees the full class list so vote columns line up
        tree._fit_encoded(x, y, self.classes_)

    def fit(self, x: Any, y: Any) -> "RandomForestClassifier":
        data, labels = check_xy(x, y)
        self.classes_, encoded = np.unique(labels, return_inverse=True)
        in_bag = self._fit_trees(data, encoded)

        self.oob_score_ = None
        if self.oob_score:
            votes = np.zeros((len(data), len(self.classes_)))
            for tree, mask in zip(self.estimators_, self._oob_masks(in_bag, len(data))):
                if mask.any():
                    predicted = np.argmax(tree._leaf_values(data[mask]), axis=1)
                    votes[np.nonzero(mask)[0], predicted] += 1
            covered = votes.sum(axis=1) > 0
            if covered.any():
                self.oob_score_ = accuracy_score(encoded[covered], np.argmax(votes[covered], axis=1))
            else:
                logger.warning("No out-of-bag samples; oob_score_ left unset")
        return self

    def _votes(self, data: np.ndarray) -> np.ndarray:
        votes = np.zeros((len(data), len(self.classes_)))
        rows = np.arange(len(data))
        for tree in self.estimators_:
            votes[rows, np.argmax(tree._leaf_values(data), axis=1)] += 1
        return votes

    def predict(self, x: Any) -> np.ndarray:
        """Majority vote; ties go to the smallest label."""
        data = self._check_input(x)
        return self.classes_[np.argmax(self._votes(data), axis=1)]

    def predict_proba(self, x: Any) -> np.ndarray:
        """Mean of the per-tree leaf class distributions."""
        data = self._check_input(x)
        return np.mean([tree.predict_proba(data) for tree in self.estimators_], axis=0)


class RandomForestRegressor(_BaseForest, RegressorMixin):
    """Average of bootstrap-trained regression trees."""

    def __init__(
        self,
        n_estimators: int = 100,
        criterion: str = "mse",
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        max_features: MaxFeatures = 1.0,
        bootstrap: bool = True,
        oob_score: bool = False,
        random_state: RandomState = None,
    ):
        super().__init__(
            n_estimators, criterion, max_depth, min_samples_split, min_samples_leaf,
            max_features, bootstrap, oob_score, random_state,
        )

    def _make_tree(self, seed: int) -> DecisionTreeRegressor:
        return DecisionTreeRegressor(
            criterion=self.criterion,
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            max_features=self.max_features,
            random_state=seed,
        )

    def _fit_tree(self, tree, x: np.ndarray, y: np.ndarray) -> None:
        tree.fit(x, y)

    def fit(self, x: Any, y: Any) -> "RandomForestRegressor":
        data, target = check_xy(x, y, y_dtype=np.float64)
        in_bag = self._fit_trees(data, target)

        self.oob_score_ = None
        if self.oob_score:
            sums = np.zeros(len(data))
            counts = np.zeros(len(data))
            for tree, mask in zip(self.estimators_, self._oob_masks(in_bag, len(data))):
                if mask.any():
                    sums[mask] += tree.predict(data[mask])
                    counts[mask] += 1
            covered = counts > 0
            if covered.any():
                self.oob_score_ = r2_score(target[covered], sums[covered] / counts[covered])
            else:
                logger.warning("No out-of-bag samples; oob_score_ left unset")
        return self

    def predict(self, x: Any) -> np.ndarray:
        data = self._check_input(x)
        return np.mean([tree.predict(data) for tree in self.estimators_], axis=0)


class GradientBoostingClassifier(BaseEstimator, ClassifierMixin):
    """
    Gradient boosting with softmax cross-entropy.

    Class scores start at the per-class prior log-odds. Every round fits one
    regression tree per class to the residual ``onehot - softmax(scores)``
    and adds ``learning_rate`` times its prediction to that class's score.

    Args:
        n_estimators: Boosting rounds
        learning_rate: Shrinkage applied to each tree
        max_depth: Depth limit per tree
        min_samples_split: Minimum samples to attempt a split
        min_samples_leaf: Minimum samples in each child
        subsample: Fraction of samples drawn (without replacement) per round
        random_state: Seed for subsampling and tree feature order
    """

    def __init__(
        self,
        n_estimators: int = 100,
        learning_rate: float = 0.1,
        max_depth: Optional[int] = 3,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        subsample: float = 1.0,
        random_state: RandomState = None,
    ):
        if n_estimators < 1:
            raise InvalidConfigurationError("n_estimators must be >= 1")
        if not learning_rate > 0:
            raise InvalidConfigurationError(f"learning_rate must be positive, got {learning_rate}")
        if not 0 < subsample <= 1:
            raise InvalidConfigurationError(f"subsample must be in (0, 1], got {subsample}")
        self.n_estimators = n_estimators
        self.learning_rate = learning_rate
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.subsample = subsample
        self.random_state = random_state
        self.classes_: Optional[np.ndarray] = None
        self.init_: Optional[np.ndarray] = None
        self.estimators_: Optional[List[List[DecisionTreeRegressor]]] = None
        self.train_score_: Optional[np.ndarray] = None
        self.feature_importances_: Optional[np.ndarray] = None
        self.n_features_in_: Optional[int] = None

    def fit(self, x: Any, y: Any) -> "GradientBoostingClassifier":
        """
        Run n_estimators boosting rounds.

        Raises:
            InvalidConfigurationError: If y holds a single class
        """
        data, labels = check_xy(x, y)
        classes, encoded = np.unique(labels, return_inverse=True)
        if len(classes) < 2:
            raise InvalidConfigurationError("GradientBoostingClassifier needs at least two classes in y")
        n_samples, n_classes = len(data), len(classes)
        onehot = np.eye(n_classes)[encoded]
        prior = np.clip(onehot.mean(axis=0), 1e-12, 1.0 - 1e-12)
        self.init_ = np.log(prior / (1.0 - prior))

        scores = np.tile(self.init_, (n_samples, 1))
        n_drawn = max(1, int(round(self.subsample * n_samples)))
        rng = make_rng(self.random_state)
        rows = np.arange(n_samples)
        self.estimators_ = []
        losses = []
        for seed in spawn_seeds(rng, self.n_estimators):
            round_rng = make_rng(seed)
            residual = onehot - softmax(scores)
            if n_drawn < n_samples:
                idx = round_rng.choice(n_samples, size=n_drawn, replace=False)
            else:
                idx = rows
            trees = []
            for k in range(n_classes):
                tree = DecisionTreeRegressor(
                    max_depth=self.max_depth,
                    min_samples_split=self.min_samples_split,
                    min_samples_leaf=self.min_samples_leaf,
                    random_state=int(round_rng.integers(0, 2**31 - 1)),
                )
                tree.fit(data[idx], residual[idx, k])
                scores[:, k] += self.learning_rate * tree.predict(data)
                trees.append(tree)
            self.estimators_.append(trees)
            proba = softmax(scores)[rows, encoded]
            losses.append(float(-np.mean(np.log(np.clip(proba, 1e-15, 1.0)))))

        self.classes_ = classes
        self.train_score_ = np.array(losses)
        self.n_features_in_ = data.shape[1]
        importances = np.mean([t.feature_importances_ for trees in self.estimators_ for t in trees], axis=0)
        total = importances.sum()
        self.feature_importances_ = importances / total if total > 0 else importances
        logger.debug(
            f"GradientBoostingClassifier fit {self.n_estimators} rounds, "
            f"training loss {losses[0]:.4f} -> {losses[-1]:.4f}"
        )
        return self

    def decision_function(self, x: Any) -> np.ndarray:
        """Raw class scores [n_samples, n_classes]."""
        check_is_fitted(self, ["estimators_"])
        data = as_2d_array(x)
        check_n_features(data, self.n_features_in_, "GradientBoostingClassifier")
        scores = np.tile(self.init_, (len(data), 1))
        for trees in self.estimators_:
            for k, tree in enumerate(trees):
                scores[:, k] += self.learning_rate * tree.predict(data)
        return scores

    def predict_proba(self, x: Any) -> np.ndarray:
        return softmax(self.decision_function(x))

    def predict(self, x: Any) -> np.ndarray:
        return self.classes_[np.argmax(self.decision_function(x), axis=1)]
