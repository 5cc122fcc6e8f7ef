"""
Decision trees grown by greedy recursive splitting.

Split rules:
- Candidate thresholds are the observed values of each feature except the
  largest; samples with x <= threshold go left.
- Each candidate is scored by impurity decrease (Gini/entropy for
  classification, variance for regression).
- Ties keep the first candidate found: features in index order, thresholds
  ascending.
- A node becomes a leaf at max_depth, when pure, when it has fewer than
  min_samples_split samples, or when no split leaves min_samples_leaf
  samples on both sides.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union
import logging
import math

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features, check_xy
from ..errors import InvalidConfigurationError
from ..infrastructure.reproducibility import RandomState, make_rng
from .base import BaseEstimator, ClassifierMixin, RegressorMixin

logger = logging.getLogger(__name__)

MaxFeatures = Union[None, str, int, float]


@dataclass
class TreeNode:
    """A split node (feature/threshold/children) or a leaf (value only)."""

    value: np.ndarray  # Class counts (classifier) or [mean] (regressor)
    n_samples: int
    impurity: float
    feature: Optional[int] = None
    threshold: Optional[float] = None
    left: Optional["TreeNode"] = None
    right: Optional["TreeNode"] = None

    @property
    def is_leaf(self) -> bool:
        return self.feature is None


def resolve_max_features(max_features: MaxFeatures, n_features: int) -> int:
    """Number of features examined per split."""
    if max_features is None or max_features == "all":
        return n_features
    if max_features == "sqrt":
        return max(1, int(math.sqrt(n_features)))
    if max_features == "log2":
        return max(1, int(math.log2(n_features)))
    if isinstance(max_features, bool):
        raise InvalidConfigurationError(f"Invalid max_features: {max_features!r}")
    if isinstance(max_features, (int, np.integer)):
        if max_features < 1:
            raise InvalidConfigurationError("max_features must be >= 1")
        return min(int(max_features), n_features)
    if isinstance(max_features, float) and 0 < max_features <= 1:
        return max(1, int(max_features * n_features))
    raise InvalidConfigurationError(f"Invalid max_features: {max_features!r}")


# ----------------------------------------------------------------------
# Impurity over prefix counts
# ----------------------------------------------------------------------

def _gini(counts: np.ndarray, totals: np.ndarray) -> np.ndarray:
    p = counts / totals[..., None]
    return 1.0 - np.sum(p * p, axis=-1)


def _entropy(counts: np.ndarray, totals: np.ndarray) -> np.ndarray:
    p = counts / totals[..., None]
    with np.errstate(divide="ignore", invalid="ignore"):
        terms = np.where(p > 0, p * np.log2(p), 0.0)
    return -np.sum(terms, axis=-1)


class _BaseDecisionTree(BaseEstimator):
    """Tree growing shared by the classifier and the regressor."""

    def __init__(
        self,
        criterion: str,
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        max_features: MaxFeatures = None,
        random_state: RandomState = None,
    ):
        if max_depth is not None and max_depth < 0:
            raise InvalidConfigurationError("max_depth must be >= 0")
        if min_samples_split < 2:
            raise InvalidConfigurationError("min_samples_split must be >= 2")
        if min_samples_leaf < 1:
            raise InvalidConfigurationError("min_samples_leaf must be >= 1")
        self.criterion = criterion
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.max_features = max_features
        self.random_state = random_state
        self.root_: Optional[TreeNode] = None
        self.n_features_in_: Optional[int] = None
        self.feature_importances_: Optional[np.ndarray] = None

    # Subclass hooks -----------------------------------------------------

    def _node_value(self, y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _node_impurity(self, y: np.ndarray) -> float:
        raise NotImplementedError

    def _split_impurities(self, y_sorted: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Impurity of left/right children for every prefix split point."""
        raise NotImplementedError

    # Growing ------------------------------------------------------------

    def _grow(self, x: np.ndarray, y: np.ndarray) -> None:
        n_samples, n_features = x.shape
        self.n_features_in_ = n_features
        self._n_split_features = resolve_max_features(self.max_features, n_features)
        self._rng = make_rng(self.random_state)
        self._importances = np.zeros(n_features)
        self._n_total = n_samples

        self.root_ = self._build(x, y, np.arange(n_samples), depth=0)

        total = self._importances.sum()
        self.feature_importances_ = self._importances / total if total > 0 else self._importances
        logger.debug(
            f"{type(self).__name__} grown: depth={self.get_depth()}, leaves={self.get_n_leaves()}"
        )

    def _candidate_features(self, n_features: int) -> np.ndarray:
        if self._n_split_features >= n_features:
            return np.arange(n_features)
        chosen = self._rng.choice(n_features, size=self._n_split_features, replace=False)
        return np.sort(chosen)

    def _best_split(self, x: np.ndarray, y: np.ndarray, parent_impurity: float):
        n = len(y)
        best: Optional[Tuple[float, int, float]] = None  # (gain, feature, threshold)
        leaf = self.min_samples_leaf

        for feature in self._candidate_features(x.shape[1]):
            order = np.argsort(x[:, feature], kind="mergesort")
            xs = x[order, feature]
            left_imp, right_imp = self._split_impurities(y[order])

            # Split after position i: left = first i+1 samples
            positions = np.arange(n - 1)
            valid = (xs[:-1] < xs[1:]) & (positions + 1 >= leaf) & (n - positions - 1 >= leaf)
            if not valid.any():
                continue
            n_left = positions + 1
            weighted = (n_left * left_imp + (n - n_left) * right_imp) / n
            gains = np.where(valid, parent_impurity - weighted, -np.inf)
            i = int(np.argmax(gains))
            if best is None or gains[i] > best[0]:
                best = (float(gains[i]), int(feature), float(xs[i]))
        return best

    def _build(self, x: np.ndarray, y: np.ndarray, idx: np.ndarray, depth: int) -> TreeNode:
        xi, yi = x[idx], y[idx]
        impurity = self._node_impurity(yi)
        node = TreeNode(value=self._node_value(yi), n_samples=len(idx), impurity=impurity)

        if (
            (self.max_depth is not None and depth >= self.max_depth)
            or len(idx) < self.min_samples_split
            or impurity <= 1e-12
        ):
            return node

        split = self._best_split(xi, yi, impurity)
        if split is None:
            return node

        gain, feature, threshold = split
        mask = xi[:, feature] <= threshold
        self._importances[feature] += len(idx) / self._n_total * gain
        node.feature = feature
        node.threshold = threshold
        node.left = self._build(x, y, idx[mask], depth + 1)
        node.right = self._build(x, y, idx[~mask], depth + 1)
        return node

    # Inference ----------------------------------------------------------

    def _leaf_values(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["root_"])
        data = as_2d_array(x)
        check_n_features(data, self.n_features_in_, type(self).__name__)
        out = []
        for row in data:
            node = self.root_
            while not node.is_leaf:
                node = node.left if row[node.feature] <= node.threshold else node.right
            out.append(node.value)
        return np.array(out)

    def apply(self, x: Any) -> List[TreeNode]:
        """Leaf node reached by each sample."""
        check_is_fitted(self, ["root_"])
        data = as_2d_array(x)
        leaves = []
        for row in data:
            node = self.root_
            while not node.is_leaf:
                node = node.left if row[node.feature] <= node.threshold else node.right
            leaves.append(node)
        return leaves

    def get_depth(self) -> int:
        check_is_fitted(self, ["root_"])

        def depth(node: TreeNode) -> int:
            return 0 if node.is_leaf else 1 + max(depth(node.left), depth(node.right))

        return depth(self.root_)

    def get_n_leaves(self) -> int:
        check_is_fitted(self, ["root_"])

        def leaves(node: TreeNode) -> int:
            return 1 if node.is_leaf else leaves(node.left) + leaves(node.right)

        return leaves(self.root_)

    def _format_leaf(self, node: TreeNode) -> str:
        raise NotImplementedError

    def export_text(self, feature_names: Optional[List[str]] = None, decimals: int = 2) -> str:
        """Indented text rendering of the fitted tree."""
        check_is_fitted(self, ["root_"])
        names = feature_names or [f"feature_{j}" for j in range(self.n_features_in_)]
        lines: List[str] = []

        def walk(node: TreeNode, depth: int) -> None:
            indent = "|   " * depth + "|--- "
            if node.is_leaf:
                lines.append(indent + self._format_leaf(node))
                return
            name = names[node.feature]
            lines.append(f"{indent}{name} <= {node.threshold:.{decimals}f}")
            walk(node.left, depth + 1)
            lines.append(f"{indent}{name} >  {node.threshold:.{decimals}f}")
            walk(node.right, depth + 1)

        walk(self.root_, 0)
        return "\n".join(lines)


class DecisionTreeClassifier(_BaseDecisionTree, ClassifierMixin):
    """
    Classification tree.

    Args:
        criterion: "gini" or "entropy"
        max_depth: Depth limit (None = unlimited)
        min_samples_split: Minimum samples to attempt a split
        min_samples_leaf: Minimum samples in each child
        max_features: Features examined per split: None, "sqrt", "log2",
            an int, or a fraction
        random_state: Seed for feature subsampling
    """

    CRITERIA = ("gini", "entropy")

    def __init__(
        self,
        criterion: str = "gini",
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        max_features: MaxFeatures = None,
        random_state: RandomState = None,
    ):
        if criterion not in self.CRITERIA:
            raise InvalidConfigurationError(f"criterion must be one of {self.CRITERIA}, got {criterion}")
        super().__init__(criterion, max_depth, min_samples_split, min_samples_leaf, max_features, random_state)
        self.classes_: Optional[np.ndarray] = None

    def fit(self, x: Any, y: Any) -> "DecisionTreeClassifier":
        data, labels = check_xy(x, y)
        classes, encoded = np.unique(labels, return_inverse=True)
        return self._fit_encoded(data, encoded, classes)

    def _fit_encoded(self, data: np.ndarray, encoded: np.ndarray, classes: np.ndarray) -> "DecisionTreeClassifier":
        """Fit on labels already encoded as indices into classes."""
        self.classes_ = classes
        self._n_classes = len(classes)
        self._grow(data, encoded)
        return self

    def _node_value(self, y: np.ndarray) -> np.ndarray:
        return np.bincount(y, minlength=self._n_classes).astype(np.float64)

    def _impurity_fn(self):
        return _gini if self.criterion == "gini" else _entropy

    def _node_impurity(self, y: np.ndarray) -> float:
        counts = self._node_value(y)
        return float(self._impurity_fn()(counts[None, :], np.array([len(y)], dtype=float))[0])

    def _split_impurities(self, y_sorted: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        one_hot = np.eye(self._n_classes)[y_sorted]
        left = np.cumsum(one_hot, axis=0)[:-1]
        right = one_hot.sum(axis=0) - left
        n_left = np.arange(1, len(y_sorted), dtype=float)
        n_right = len(y_sorted) - n_left
        fn = self._impurity_fn()
        return fn(left, n_left), fn(right, n_right)

    def predict_proba(self, x: Any) -> np.ndarray:
        counts = self._leaf_values(x)
        return counts / counts.sum(axis=1, keepdims=True)

    def predict(self, x: Any) -> np.ndarray:
        # argmax returns the first maximum, i.e. the smallest label on ties
        return self.classes_[np.argmax(self._leaf_values(x), axis=1)]

    def _format_leaf(self, node: TreeNode) -> str:
        return f"class: {self.classes_[int(np.argmax(node.value))]}"


class DecisionTreeRegressor(_BaseDecisionTree, RegressorMixin):
    """Regression tree; leaves predict the mean target, splits minimize variance."""

    CRITERIA = ("mse", "variance")

    def __init__(
        self,
        criterion: str = "mse",
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        max_features: MaxFeatures = None,
        random_state: RandomState = None,
    ):
        if criterion not in self.CRITERIA:
            raise InvalidConfigurationError(f"criterion must be one of {self.CRITERIA}, got {criterion}")
        super().__init__(criterion, max_depth, min_samples_split, min_samples_leaf, max_features, random_state)

    def fit(self, x: Any, y: Any) -> "DecisionTreeRegressor":
        data, target = check_xy(x, y, y_dtype=np.float64)
        self._grow(data, target)
        return self

    def _node_value(self, y: np.ndarray) -> np.ndarray:
        return np.array([float(y.mean())])

    def _node_impurity(self, y: np.ndarray) -> float:
        return float(y.var())

    def _split_impurities(self, y_sorted: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        n = len(y_sorted)
        n_left = np.arange(1, n, dtype=float)
        n_right = n - n_left
        csum = np.cumsum(y_sorted)[:-1]
        csq = np.cumsum(y_sorted * y_sorted)[:-1]
        total, total_sq = y_sorted.sum(), (y_sorted * y_sorted).sum()
        left_var = csq / n_left - (csum / n_left) ** 2
        right_var = (total_sq - csq) / n_right - ((total - csum) / n_right) ** 2
        return np.maximum(left_var, 0.0), np.maximum(right_var, 0.0)

    def predict(self, x: Any) -> np.ndarray:
        return self._leaf_values(x)[:, 0]

    def _format_leaf(self, node: TreeNode) -> str:
        return f"value: {node.value[0]:.4f}"
