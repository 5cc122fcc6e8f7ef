"""
Clustering quality metrics.
"""

from typing import Any, Tuple

import numpy as np

from ...core.data.validation import as_2d_array
from ...errors import DimensionMismatchError, InvalidConfigurationError


def _check_labelled(x: Any, labels: Any) -> Tuple[np.ndarray, np.ndarray]:
    data = as_2d_array(x)
    labels = np.asarray(labels).reshape(-1)
    if labels.size != data.shape[0]:
        raise DimensionMismatchError(f"X has {data.shape[0]} samples but {labels.size} labels")
    return data, labels


def pairwise_distances(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Euclidean distance between every row of a and every row of b."""
    sq = np.sum(a * a, axis=1)[:, None] + np.sum(b * b, axis=1)[None, :] - 2.0 * a @ b.T
    return np.sqrt(np.maximum(sq, 0.0))


def silhouette_score(x: Any, labels: Any) -> float:
    """
    Mean silhouette coefficient over all samples.

    Samples in singleton clusters score 0.

    Raises:
        InvalidConfigurationError: Unless 2 <= n_clusters <= n_samples - 1
    """
    data, labels = _check_labelled(x, labels)
    clusters = np.unique(labels)
    if not 2 <= len(clusters) <= len(labels) - 1:
        raise InvalidConfigurationError(
            f"Silhouette needs 2 <= n_clusters <= n_samples - 1, got {len(clusters)} clusters"
        )
    distances = pairwise_distances(data, data)
    scores = np.zeros(len(labels))
    for i in range(len(labels)):
        own = labels == labels[i]
        n_own = own.sum() - 1
        if n_own == 0:
            continue
        a = distances[i, own].sum() / n_own
        b = min(distances[i, labels == c].mean() for c in clusters if c != labels[i])
        scores[i] = (b - a) / max(a, b) if max(a, b) > 0 else 0.0
    return float(scores.mean())


def _comb2(n: np.ndarray) -> np.ndarray:
    return n * (n - 1) / 2.0


def adjusted_rand_score(labels_true: Any, labels_pred: Any) -> float:
    """Rand index adjusted for chance; 1.0 for identical partitions."""
    t = np.asarray(labels_true).reshape(-1)
    p = np.asarray(labels_pred).reshape(-1)
    if t.shape != p.shape:
        raise DimensionMismatchError(f"{t.size} true labels but {p.size} predicted labels")
    if t.size == 0:
        raise DimensionMismatchError("Metrics need at least one sample")

    _, t_idx = np.unique(t, return_inverse=True)
    _, p_idx = np.unique(p, return_inverse=True)
    contingency = np.zeros((t_idx.max() + 1, p_idx.max() + 1))
    np.add.at(contingency, (t_idx, p_idx), 1)

    sum_comb = _comb2(contingency).sum()
    sum_rows = _comb2(contingency.sum(axis=1)).sum()
    sum_cols = _comb2(contingency.sum(axis=0)).sum()
    total = _comb2(np.array(float(t.size)))

    expected = sum_rows * sum_cols / total if total > 0 else 0.0
    maximum = (sum_rows + sum_cols) / 2.0
    if maximum == expected:
        return 1.0
    return float((sum_comb - expected) / (maximum - expected))


def davies_bouldin_score(x: Any, labels: Any) -> float:
    """
    Mean over clusters of the worst (scatter_i + scatter_j) / centroid distance.

    Lower is better. Scatter is the mean distance of members to their centroid.
    """
    data, labels = _check_labelled(x, labels)
    clusters = np.unique(labels)
    if len(clusters) < 2:
        raise InvalidConfigurationError("Davies-Bouldin needs at least 2 clusters")

    centroids = np.array([data[labels == c].mean(axis=0) for c in clusters])
    scatters = np.array([
        np.linalg.norm(data[labels == c] - centroids[k], axis=1).mean()
        for k, c in enumerate(clusters)
    ])
    separation = pairwise_distances(centroids, centroids)

    worst = np.zeros(len(clusters))
    for i in range(len(clusters)):
        for j in range(len(clusters)):
            if i != j and separation[i, j] > 0:
                worst[i] = max(worst[i], (scatters[i] + scatters[j]) / separation[i, j])
    return float(worst.mean())
