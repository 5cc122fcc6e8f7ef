"""
k-nearest-neighbour classification and regression.

Neighbours are ordered by (distance, training index), so equal distances
resolve to the earlier training sample.
"""

from typing import Any, Optional, Tuple
import logging

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features, check_xy
from ..errors import InvalidConfigurationError
from .base import BaseEstimator, ClassifierMixin, RegressorMixin

logger = logging.getLogger(__name__)

WEIGHTS = ("uniform", "distance")
METRICS = ("euclidean", "manhattan", "minkowski", "cosine")


def _distances(a: np.ndarray, b: np.ndarray, metric: str, p: float) -> np.ndarray:
    if metric == "euclidean":
        sq = np.sum(a * a, axis=1)[:, None] + np.sum(b * b, axis=1)[None, :] - 2.0 * a @ b.T
        return np.sqrt(np.maximum(sq, 0.0))
    if metric == "cosine":
        norms = np.linalg.norm(a, axis=1)[:, None] * np.linalg.norm(b, axis=1)[None, :]
        with np.errstate(invalid="ignore", divide="ignore"):
            similarity = np.where(norms > 0, (a @ b.T) / norms, 0.0)
        return 1.0 - similarity
    diff = np.abs(a[:, None, :] - b[None, :, :])
    if metric == "manhattan":
        return diff.sum(axis=2)
    return np.sum(diff ** p, axis=2) ** (1.0 / p)


class _BaseNeighbors(BaseEstimator):
    def __init__(self, n_neighbors: int, weights: str, metric: str, p: float):
        if n_neighbors < 1:
            raise InvalidConfigurationError(f"n_neighbors must be >= 1, got {n_neighbors}")
        if weights not in WEIGHTS:
            raise InvalidConfigurationError(f"weights must be one of {WEIGHTS}, got {weights}")
        if metric not in METRICS:
            raise InvalidConfigurationError(f"metric must be one of {METRICS}, got {metric}")
        if p < 1:
            raise InvalidConfigurationError("p must be >= 1")
        self.n_neighbors = n_neighbors
        self.weights = weights
        self.metric = metric
        self.p = p
        self._fit_x: Optional[np.ndarray] = None
        self._fit_y: Optional[np.ndarray] = None

    def _store(self, data: np.ndarray, target: np.ndarray) -> None:
        if self.n_neighbors > len(data):
            raise InvalidConfigurationError(
                f"n_neighbors={self.n_neighbors} exceeds n_samples={len(data)}"
            )
        self._fit_x = data
        self._fit_y = target

    def kneighbors(self, x: Any, n_neighbors: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Distances to and indices of the nearest training samples.

        Returns:
            (distances, indices), each [n_queries, n_neighbors]
        """
        check_is_fitted(self, ["_fit_x"])
        data = as_2d_array(x)
        check_n_features(data, self._fit_x.shape[1], type(self).__name__)
        k = self.n_neighbors if n_neighbors is None else n_neighbors
        if not 1 <= k <= len(self._fit_x):
            raise InvalidConfigurationError(f"n_neighbors must be in [1, {len(self._fit_x)}], got {k}")
        dist = _distances(data, self._fit_x, self.metric, self.p)
        # Stable sort keeps training order among equal distances
        order = np.argsort(dist, axis=1, kind="stable")[:, :k]
        return np.take_along_axis(dist, order, axis=1), order

    def _neighbor_weights(self, dist: np.ndarray) -> np.ndarray:
        if self.weights == "uniform":
            return np.ones_like(dist)
        exact = dist == 0
        with np.errstate(divide="ignore"):
            w = 1.0 / dist
        # Exact matches take all the weight of their row
        rows = exact.any(axis=1)
        w[rows] = exact[rows].astype(np.float64)
        return w


class KNeighborsClassifier(_BaseNeighbors, ClassifierMixin):
    """
    Majority vote among the k nearest training samples.

    Vote ties go to the label with the smallest summed neighbour distance,
    then to the label whose nearest neighbour comes first.
    """

    def __init__(self, n_neighbors: int = 5, weights: str = "uniform", metric: str = "euclidean", p: float = 2.0):
        super().__init__(n_neighbors, weights, metric, p)
        self.classes_: Optional[np.ndarray] = None

    def fit(self, x: Any, y: Any) -> "KNeighborsClassifier":
        data, labels = check_xy(x, y)
        self.classes_, encoded = np.unique(labels, return_inverse=True)
        self._store(data, encoded)
        return self

    def _votes(self, x: Any) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        dist, idx = self.kneighbors(x)
        neighbor_labels = self._fit_y[idx]
        weights = self._neighbor_weights(dist)
        n_classes = len(self.classes_)
        votes = np.zeros((len(dist), n_classes))
        dist_sums = np.zeros((len(dist), n_classes))
        for row in range(len(dist)):
            np.add.at(votes[row], neighbor_labels[row], weights[row])
            np.add.at(dist_sums[row], neighbor_labels[row], dist[row])
        return votes, dist_sums, neighbor_labels

    def predict(self, x: Any) -> np.ndarray:
        votes, dist_sums, neighbor_labels = self._votes(x)
        predictions = np.empty(len(votes), dtype=np.int64)
        for row in range(len(votes)):
            top = np.flatnonzero(np.isclose(votes[row], votes[row].max()))
            if len(top) > 1:
                top = top[np.isclose(dist_sums[row, top], dist_sums[row, top].min())]
            if len(top) > 1:
                # Earliest-ranked neighbour among the remaining labels
                first_rank = {label: np.flatnonzero(neighbor_labels[row] == label)[0] for label in top}
                top = [min(top, key=lambda label: first_rank[label])]
            predictions[row] = top[0]
        return self.classes_[predictions]

    def predict_proba(self, x: Any) -> np.ndarray:
        votes, _, _ = self._votes(x)
        return votes / votes.sum(axis=1, keepdims=True)


class KNeighborsRegressor(_BaseNeighbors, RegressorMixin):
    """Mean (or inverse-distance weighted mean) of the k nearest targets."""

    def __init__(self, n_neighbors: int = 5, weights: str = "uniform", metric: str = "euclidean", p: float = 2.0):
        super().__init__(n_neighbors, weights, metric, p)

    def fit(self, x: Any, y: Any) -> "KNeighborsRegressor":
        data, target = check_xy(x, y, y_dtype=np.float64)
        self._store(data, target)
        return self

    def predict(self, x: Any) -> np.ndarray:
        dist, idx = self.kneighbors(x)
        weights = self._neighbor_weights(dist)
        return np.sum(weights * self._fit_y[idx], axis=1) / weights.sum(axis=1)
