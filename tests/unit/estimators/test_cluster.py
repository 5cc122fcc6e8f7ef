"""
Unit tests for KMeans, MiniBatchKMeans and DBSCAN.
"""

import pytest
import numpy as np

from mlcore.errors import DimensionMismatchError, InvalidConfigurationError, NotFittedError
from mlcore.estimators import DBSCAN, KMeans, MiniBatchKMeans
from mlcore.evaluation.metrics import adjusted_rand_score


class TestKMeans:
    """Lloyd's algorithm with restarts."""

    def test_recovers_blobs(self, two_blobs) -> None:
        """Two blobs give two clusters matching the ground truth."""
        x, y = two_blobs
        model = KMeans(n_clusters=2, random_state=0).fit(x)
        assert adjusted_rand_score(y, model.labels_) == 1.0
        centers = sorted(model.cluster_centers_.tolist())
        np.testing.assert_allclose(centers[0], [0.0, 0.0], atol=0.3)
        np.testing.assert_allclose(centers[1], [6.0, 6.0], atol=0.3)

    def test_inertia_matches_score(self, two_blobs) -> None:
        """score is the negated inertia on the training data."""
        x, _ = two_blobs
        model = KMeans(n_clusters=2, random_state=0).fit(x)
        assert model.inertia_ > 0
        assert model.score(x) == pytest.approx(-model.inertia_)

    def test_seed_is_reproducible(self, two_blobs) -> None:
        """One seed, one result."""
        x, _ = two_blobs
        a = KMeans(n_clusters=3, init="random", random_state=5).fit(x)
        b = KMeans(n_clusters=3, init="random", random_state=5).fit(x)
        np.testing.assert_array_equal(a.cluster_centers_, b.cluster_centers_)

    def test_explicit_init(self) -> None:
        """An init array is used as the starting centroids."""
        x = np.array([[0.0], [1.0], [10.0], [11.0]])
        model = KMeans(n_clusters=2, init=np.array([[0.0], [10.0]])).fit(x)
        np.testing.assert_allclose(model.cluster_centers_, [[0.5], [10.5]])
        assert model.labels_.tolist() == [0, 0, 1, 1]

    def test_predict_and_transform(self, two_blobs) -> None:
        """New samples go to the nearest centroid."""
        x, _ = two_blobs
        model = KMeans(n_clusters=2, random_state=0).fit(x)
        np.testing.assert_array_equal(model.predict(model.cluster_centers_), [0, 1])
        distances = model.transform(x[:3])
        assert distances.shape == (3, 2)
        np.testing.assert_array_equal(np.argmin(distances, axis=1), model.predict(x[:3]))

    def test_more_clusters_than_samples(self) -> None:
        """k cannot exceed the sample count."""
        with pytest.raises(InvalidConfigurationError):
            KMeans(n_clusters=5).fit(np.zeros((3, 2)))

    def test_zero_clusters(self) -> None:
        """k must be positive."""
        with pytest.raises(InvalidConfigurationError):
            KMeans(n_clusters=0)

    def test_not_fitted(self) -> None:
        """predict before fit raises."""
        with pytest.raises(NotFittedError):
            KMeans(n_clusters=2).predict([[0.0, 0.0]])

class TestMiniBatchKMeans:
    """Streaming centroid updates on random batches."""

    def test_recovers_blobs(self, two_blobs) -> None:
        """Mini-batches find the same two clusters as full k-means."""
        x, y = two_blobs
        model = MiniBatchKMeans(n_clusters=2, batch_size=10, max_iter=20, random_state=0).fit(x)
        assert adjusted_rand_score(y, model.labels_) == 1.0
        centers = sorted(model.cluster_centers_.tolist())
        np.testing.assert_allclose(centers[0], [0.0, 0.0], atol=0.3)
        np.testing.assert_allclose(centers[1], [6.0, 6.0], atol=0.3)
        assert model.score(x) == pytest.approx(-model.inertia_)

    def test_counts_track_absorbed_samples(self, two_blobs) -> None:
        """Without a tolerance every batch runs; batches are capped at n_samples."""
        x, _ = two_blobs
        model = MiniBatchKMeans(n_clusters=2, batch_size=100, max_iter=5, random_state=1).fit(x)
        assert model.n_iter_ == 5
        assert model.counts_.sum() == 5 * len(x)

    def test_centroids_are_running_means(self) -> None:
        """With one full batch each centroid is the mean of its samples."""
        x = np.array([[0.0], [1.0], [10.0], [11.0]])
        model = MiniBatchKMeans(
            n_clusters=2, init=np.array([[0.0], [10.0]]), batch_size=4, max_iter=1, random_state=0
        ).fit(x)
        np.testing.assert_allclose(model.cluster_centers_, [[0.5], [10.5]])
        assert model.labels_.tolist() == [0, 0, 1, 1]

    def test_tolerance_stops_early(self, two_blobs) -> None:
        """A loose tolerance ends fitting after the first batch."""
        x, _ = two_blobs
        model = MiniBatchKMeans(n_clusters=2, max_iter=50, tol=1e6, random_state=0).fit(x)
        assert model.n_iter_ == 1

    def test_seed_is_reproducible(self, two_blobs) -> None:
        """One seed, one result."""
        x, _ = two_blobs
        a = MiniBatchKMeans(n_clusters=3, batch_size=8, random_state=5).fit(x)
        b = MiniBatchKMeans(n_clusters=3, batch_size=8, random_state=5).fit(x)
        np.testing.assert_array_equal(a.cluster_centers_, b.cluster_centers_)

    def test_partial_fit(self) -> None:
        """Successive batches keep updating the same centroids."""
        model = MiniBatchKMeans(n_clusters=2, init=np.array([[0.0], [10.0]]))
        model.partial_fit([[0.0], [10.0]]).partial_fit([[1.0], [11.0]])
        np.testing.assert_allclose(model.cluster_centers_, [[0.5], [10.5]])
        assert model.counts_.tolist() == [2.0, 2.0]
        assert model.n_iter_ == 2
        with pytest.raises(DimensionMismatchError):
            model.partial_fit([[0.0, 1.0]])

    def test_invalid_batch_size(self) -> None:
        """Batches hold at least one sample."""
        with pytest.raises(InvalidConfigurationError):
            MiniBatchKMeans(batch_size=0)

    def test_not_fitted(self) -> None:
        """predict before fit raises."""
        with pytest.raises(NotFittedError):
            MiniBatchKMeans(n_clusters=2).predict([[0.0, 0.0]])



class TestDBSCAN:
    """Density-based clustering."""

    def test_blobs_and_noise(self, two_blobs) -> None:
        """Dense blobs become clusters; an isolated point is noise."""
        x, y = two_blobs
        data = np.vstack([x, [[20.0, 20.0]]])
        labels = DBSCAN(eps=1.0, min_samples=3).fit_predict(data)
        assert labels[-1] == -1
        assert set(labels[:-1].tolist()) == {0, 1}
        assert adjusted_rand_score(y, labels[:-1]) == 1.0

    def test_core_samples(self) -> None:
        """Border points join a cluster without being core."""
        x = np.array([[0.0], [0.5], [1.0], [1.5]])
        model = DBSCAN(eps=0.6, min_samples=3).fit(x)
        assert model.core_sample_indices_.tolist() == [1, 2]
        assert model.labels_.tolist() == [0, 0, 0, 0]

    def test_invalid_eps(self) -> None:
        """eps must be positive."""
        with pytest.raises(InvalidConfigurationError):
            DBSCAN(eps=0.0)
