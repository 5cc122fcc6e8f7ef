"""
Clustering: k-means (Lloyd's algorithm), mini-batch k-means and DBSCAN.
"""

from typing import Any, Optional, Tuple, Union
import logging

import numpy as np

from ..core.data.validation import as_2d_array, check_is_fitted, check_n_features
from ..errors import InvalidConfigurationError
from ..infrastructure.reproducibility import RandomState, make_rng, spawn_seeds
from .base import BaseEstimator

logger = logging.getLogger(__name__)

INIT_METHODS = ("k-means++", "random")


def _squared_distances(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    sq = (
        np.sum(data * data, axis=1)[:, None]
        + np.sum(centers * centers, axis=1)[None, :]
        - 2.0 * data @ centers.T
    )
    return np.maximum(sq, 0.0)


class KMeans(BaseEstimator):
    """
    K-means clustering.

    Args:
        n_clusters: Number of centroids
        init: "k-means++", "random", or an explicit [n_clusters, n_features] array
        n_init: Independent restarts; the run with the lowest inertia is kept
        max_iter: Lloyd iterations per run
        tol: Stop when no centroid moves further than this
        random_state: Seed for initialization
    """

    def __init__(
        self,
        n_clusters: int = 8,
        init: Union[str, np.ndarray] = "k-means++",
        n_init: int = 10,
        max_iter: int = 300,
        tol: float = 1e-4,
        random_state: RandomState = None,
    ):
        if n_clusters < 1:
            raise InvalidConfigurationError(f"n_clusters must be >= 1, got {n_clusters}")
        if isinstance(init, str) and init not in INIT_METHODS:
            raise InvalidConfigurationError(f"init must be one of {INIT_METHODS} or an array, got {init}")
        if n_init < 1 or max_iter < 1:
            raise InvalidConfigurationError("n_init and max_iter must be >= 1")
        if tol < 0:
            raise InvalidConfigurationError("tol must be >= 0")
        self.n_clusters = n_clusters
        self.init = init
        self.n_init = n_init
        self.max_iter = max_iter
        self.tol = tol
        self.random_state = random_state
        self.cluster_centers_: Optional[np.ndarray] = None
        self.labels_: Optional[np.ndarray] = None
        self.inertia_: Optional[float] = None
        self.n_iter_: Optional[int] = None

    def _init_random(self, data: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        idx = rng.choice(len(data), size=self.n_clusters, replace=False)
        return data[idx].copy()

    def _init_plus_plus(self, data: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        n_samples = len(data)
        centers = np.empty((self.n_clusters, data.shape[1]))
        centers[0] = data[rng.integers(n_samples)]
        closest = _squared_distances(data, centers[:1])[:, 0]
        for k in range(1, self.n_clusters):
            total = closest.sum()
            if total > 0:
                idx = rng.choice(n_samples, p=closest / total)
            else:
                # All points coincide with existing centers
                idx = rng.integers(n_samples)
            centers[k] = data[idx]
            closest = np.minimum(closest, _squared_distances(data, centers[k:k + 1])[:, 0])
        return centers

    def _initial_centers(self, data: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        if not isinstance(self.init, str):
            centers = np.asarray(self.init, dtype=np.float64)
            if centers.shape != (self.n_clusters, data.shape[1]):
                raise InvalidConfigurationError(
                    f"init array must have shape {(self.n_clusters, data.shape[1])}, got {centers.shape}"
                )
            return centers.copy()
        if self.init == "random":
            return self._init_random(data, rng)
        return self._init_plus_plus(data, rng)

    def _lloyd(self, data: np.ndarray, centers: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float, int]:
        labels = np.full(len(data), -1)
        for iteration in range(1, self.max_iter + 1):
            new_labels = np.argmin(_squared_distances(data, centers), axis=1)
            new_centers = centers.copy()
            for k in range(self.n_clusters):
                members = new_labels == k
                # Empty clusters keep their previous centroid
                if members.any():
                    new_centers[k] = data[members].mean(axis=0)
            shift = float(np.max(np.linalg.norm(new_centers - centers, axis=1)))
            reassigned = not np.array_equal(new_labels, labels)
            centers, labels = new_centers, new_labels
            if not reassigned or shift <= self.tol:
                break
        labels = np.argmin(_squared_distances(data, centers), axis=1)
        inertia = float(np.sum((data - centers[labels]) ** 2))
        return centers, labels, inertia, iteration

    def fit(self, x: Any, y: Any = None) -> "KMeans":
        """
        Run n_init restarts of Lloyd's algorithm and keep the best.

        Raises:
            InvalidConfigurationError: If n_clusters exceeds the number of samples
        """
        data = as_2d_array(x)
        if self.n_clusters > len(data):
            raise InvalidConfigurationError(
                f"n_clusters={self.n_clusters} exceeds n_samples={len(data)}"
            )
        rng = make_rng(self.random_state)
        runs = 1 if not isinstance(self.init, str) else self.n_init

        best = None
        for seed in spawn_seeds(rng, runs):
            result = self._lloyd(data, self._initial_centers(data, make_rng(seed)))
            if best is None or result[2] < best[2]:
                best = result

        self.cluster_centers_, self.labels_, self.inertia_, self.n_iter_ = best
        logger.debug(f"KMeans fit: k={self.n_clusters}, inertia={self.inertia_:.4f}, iterations={self.n_iter_}")
        return self

    def _check_input(self, x: Any) -> np.ndarray:
        check_is_fitted(self, ["cluster_centers_"])
        data = as_2d_array(x)
        check_n_features(data, self.cluster_centers_.shape[1], "KMeans")
        return data

    def predict(self, x: Any) -> np.ndarray:
        """Nearest fitted centroid for each sample."""
        data = self._check_input(x)
        return np.argmin(_squared_distances(data, self.cluster_centers_), axis=1)

    def transform(self, x: Any) -> np.ndarray:
        """Euclidean distance from each sample to each centroid."""
        data = self._check_input(x)
        return np.sqrt(_squared_distances(data, self.cluster_centers_))

    def fit_predict(self, x: Any, y: Any = None) -> np.ndarray:
        return self.fit(x).labels_

    def score(self, x: Any, y: Any = None) -> float:
        """Negative inertia of x under the fitted centroids."""
        data = self._check_input(x)
        return -float(np.sum(np.min(_squared_distances(data, self.cluster_centers_), axis=1)))

class MiniBatchKMeans(KMeans):
    """
    K-means fitted on random mini-batches.

    Each iteration assigns one batch to the nearest centroids, then moves
    every assigned centroid towards its sample with step 1 / count, where
    count is the number of samples that centroid has absorbed so far.

    Args:
        n_clusters: Number of centroids
        init: "k-means++", "random", or an explicit [n_clusters, n_features] array
        max_iter: Number of mini-batches
        batch_size: Samples per batch (capped at the training set size)
        tol: Stop early once no centroid moves further than this in a batch;
            0 runs all max_iter batches
        random_state: Seed for initialization and batch sampling
    """

    def __init__(
        self,
        n_clusters: int = 8,
        init: Union[str, np.ndarray] = "k-means++",
        max_iter: int = 100,
        batch_size: int = 100,
        tol: float = 0.0,
        random_state: RandomState = None,
    ):
        super().__init__(n_clusters=n_clusters, init=init, n_init=1, max_iter=max_iter, tol=tol, random_state=random_state)
        if batch_size < 1:
            raise InvalidConfigurationError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self.counts_: Optional[np.ndarray] = None

    def _batch_step(self, batch: np.ndarray) -> float:
        """Update centroids and counts in place; returns the largest centroid shift."""
        previous = self.cluster_centers_.copy()
        nearest = np.argmin(_squared_distances(batch, self.cluster_centers_), axis=1)
        for point, k in zip(batch, nearest):
            self.counts_[k] += 1
            self.cluster_centers_[k] += (point - self.cluster_centers_[k]) / self.counts_[k]
        return float(np.max(np.linalg.norm(self.cluster_centers_ - previous, axis=1)))

    def _finish(self, data: np.ndarray) -> None:
        self.labels_ = np.argmin(_squared_distances(data, self.cluster_centers_), axis=1)
        self.inertia_ = float(np.sum((data - self.cluster_centers_[self.labels_]) ** 2))

    def fit(self, x: Any, y: Any = None) -> "MiniBatchKMeans":
        """
        Initialize once, then run up to max_iter mini-batch updates.

        Raises:
            InvalidConfigurationError: If n_clusters exceeds the number of samples
        """
        data = as_2d_array(x)
        if self.n_clusters > len(data):
            raise InvalidConfigurationError(
                f"n_clusters={self.n_clusters} exceeds n_samples={len(data)}"
            )
        rng = make_rng(self.random_state)
        self.cluster_centers_ = self._initial_centers(data, rng)
        self.counts_ = np.zeros(self.n_clusters)
        size = min(self.batch_size, len(data))

        iteration = 0
        for iteration in range(1, self.max_iter + 1):
            batch = data[rng.choice(len(data), size=size, replace=False)]
            shift = self._batch_step(batch)
            if self.tol > 0 and shift <= self.tol:
                break
        self.n_iter_ = iteration
        self._finish(data)
        logger.debug(
            f"MiniBatchKMeans fit: k={self.n_clusters}, inertia={self.inertia_:.4f}, batches={self.n_iter_}"
        )
        return self

    def partial_fit(self, x: Any, y: Any = None) -> "MiniBatchKMeans":
        """
        Update the centroids with one batch.

        The first call initializes the centroids from that batch, so it
        must hold at least n_clusters samples.
        """
        batch = as_2d_array(x)
        if self.cluster_centers_ is None:
            if self.n_clusters > len(batch):
                raise InvalidConfigurationError(
                    f"n_clusters={self.n_clusters} exceeds the first batch size {len(batch)}"
                )
            self.cluster_centers_ = self._initial_centers(batch, make_rng(self.random_state))
            self.counts_ = np.zeros(self.n_clusters)
            self.n_iter_ = 0
        else:
            check_n_features(batch, self.cluster_centers_.shape[1], "MiniBatchKMeans")
        self._batch_step(batch)
        self.n_iter_ += 1
        self._finish(batch)
        return self



class DBSCAN(BaseEstimator):
    """
    Density-based clustering. Noise samples get label -1.

    Args:
        eps: Neighbourhood radius
        min_samples: Neighbours (including the point itself) for a core point
    """

    def __init__(self, eps: float = 0.5, min_samples: int = 5):
        if eps <= 0:
            raise InvalidConfigurationError("eps must be positive")
        if min_samples < 1:
            raise InvalidConfigurationError("min_samples must be >= 1")
        self.eps = eps
        self.min_samples = min_samples
        self.labels_: Optional[np.ndarray] = None
        self.core_sample_indices_: Optional[np.ndarray] = None

    def fit(self, x: Any, y: Any = None) -> "DBSCAN":
        data = as_2d_array(x)
        n_samples = len(data)
        within = _squared_distances(data, data) <= self.eps ** 2
        neighbours = [np.nonzero(row)[0] for row in within]
        is_core = np.array([len(n) >= self.min_samples for n in neighbours])

        labels = np.full(n_samples, -1)
        cluster = 0
        for i in range(n_samples):
            if labels[i] != -1 or not is_core[i]:
                continue
            labels[i] = cluster
            stack = [i]
            while stack:
                point = stack.pop()
                if not is_core[point]:
                    continue
                for j in neighbours[point]:
                    if labels[j] == -1:
                        labels[j] = cluster
                        stack.append(j)
            cluster += 1

        self.labels_ = labels
        self.core_sample_indices_ = np.nonzero(is_core)[0]
        logger.debug(
            f"DBSCAN fit: {cluster} clusters, {int(np.sum(labels == -1))} noise samples"
        )
        return self

    def fit_predict(self, x: Any, y: Any = None) -> np.ndarray:
        return self.fit(x).labels_
