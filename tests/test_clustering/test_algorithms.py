"""Tests for distances, k-means, hierarchical and DBSCAN clustering."""

import numpy as np
import pytest

from samplezone.clustering import dbscan, hierarchical, kmeans, kmeans_plus_plus, pairwise_distances
from samplezone.clustering.distance import centroids_for, relabel_by_first_appearance
from samplezone.utils.errors import DegenerateClusteringError


class TestDistances:
    def test_euclidean(self):
        d = pairwise_distances([[0.0, 0.0], [3.0, 4.0]])
        np.testing.assert_allclose(d, [[0.0, 5.0], [5.0, 0.0]])

    def test_cosine_with_zero_vector(self):
        d = pairwise_distances([[0.0, 0.0], [1.0, 0.0], [0.0, 2.0]], metric="cosine")
        assert d[0, 1] == 1.0
        assert d[0, 0] == 1.0
        assert d[1, 2] == pytest.approx(1.0)
        assert d[1, 1] == pytest.approx(0.0)

    def test_centroids_and_relabel(self):
        X = np.array([[0.0], [2.0], [10.0]])
        np.testing.assert_allclose(centroids_for(X, np.array([0, 0, 1])), [[1.0], [10.0]])
        np.testing.assert_array_equal(relabel_by_first_appearance(np.array([4, 4, 1, -1, 2])),
                                      [0, 0, 1, -1, 2])


class TestKMeans:
    def test_recovers_blobs(self, blobs, partition_equal):
        X, truth = blobs
        labels, centroids = kmeans(X, 3, rng=np.random.default_rng(0))
        assert centroids.shape == (3, 2)
        assert partition_equal(labels, truth)

    def test_fixed_seed_is_deterministic(self, blobs):
        X, _ = blobs
        a, _ = kmeans(X, 4, rng=np.random.default_rng(7))
        b, _ = kmeans(X, 4, rng=np.random.default_rng(7))
        np.testing.assert_array_equal(a, b)

    @pytest.mark.parametrize("k", [0, 16])
    def test_invalid_k(self, blobs, k):
        X, _ = blobs
        with pytest.raises(DegenerateClusteringError):
            kmeans(X, k)

    def test_plus_plus_handles_duplicate_rows(self):
        X = np.zeros((4, 2))
        seeds = kmeans_plus_plus(X, 3, rng=np.random.default_rng(0))
        assert seeds.shape == (3, 2)


class TestHierarchical:
    def test_recovers_blobs(self, blobs, partition_equal):
        X, truth = blobs
        assert partition_equal(hierarchical(X, 3), truth)

    def test_labels_follow_first_appearance(self, blobs):
        X, _ = blobs
        labels = hierarchical(X, 3)
        assert labels[0] == 0
        assert set(labels) == {0, 1, 2}

    def test_edge_counts(self, blobs):
        X, _ = blobs
        assert set(hierarchical(X, 1)) == {0}
        np.testing.assert_array_equal(hierarchical(X, len(X)), np.arange(len(X)))


class TestDBSCAN:
    def test_recovers_blobs(self, blobs, partition_equal):
        X, truth = blobs
        assert partition_equal(dbscan(X, eps=2.0, min_pts=2), truth)

    def test_noise_is_reassigned(self, blobs):
        X, _ = blobs
        X = np.vstack([X, [[9.0, 1.0]]])
        labels = dbscan(X, eps=1.5, min_pts=2)
        assert np.all(labels >= 0)
        assert labels[-1] == labels[5]

    def test_noise_kept_when_requested(self, blobs):
        X, _ = blobs
        X = np.vstack([X, [[50.0, 50.0]]])
        labels = dbscan(X, eps=1.5, min_pts=2, reassign_noise=False)
        assert labels[-1] == -1

    def test_all_noise_becomes_one_cluster(self):
        X = np.array([[0.0], [10.0], [20.0]])
        np.testing.assert_array_equal(dbscan(X, eps=0.5, min_pts=2), [0, 0, 0])
