"""Tests for the clustering engine, automatic k and orderings."""

import numpy as np
import pytest

from samplezone.clustering import (
    ClusteringEngine,
    count_significant_gaps,
    farthest_point_order,
    jenks_natural_breaks,
    median_order,
    select_k,
    silhouette_score,
)
from samplezone.clustering.distance import pairwise_distances
from samplezone.core.models import ClusteringOptions
from samplezone.utils.errors import DegenerateClusteringError


class TestSilhouette:
    def test_separated_clusters_score_high(self, blobs):
        X, truth = blobs
        assert silhouette_score(X, truth) > 0.9

    def test_single_cluster_scores_zero(self, blobs):
        X, _ = blobs
        assert silhouette_score(X, np.zeros(len(X), dtype=int)) == 0.0

    def test_all_singletons_score_zero(self):
        X = np.arange(4.0)[:, None]
        assert silhouette_score(X, np.arange(4)) == 0.0


class TestSelectK:
    @pytest.mark.parametrize("max_workers", [1, 3])
    def test_finds_three_blobs(self, blobs, max_workers):
        X, _ = blobs
        k, scores = select_k(X, 2, 6, rng=np.random.default_rng(0), max_workers=max_workers)
        assert k == 3
        assert sorted(scores) == [2, 3, 4, 5, 6]

    def test_parallel_matches_sequential(self, blobs):
        X, _ = blobs
        _, seq = select_k(X, 2, 5, rng=np.random.default_rng(9), max_workers=1)
        _, par = select_k(X, 2, 5, rng=np.random.default_rng(9), max_workers=4)
        assert seq == par

    def test_needs_three_samples(self):
        with pytest.raises(DegenerateClusteringError):
            select_k(np.zeros((2, 2)), 2, 2)


class TestClusteringEngine:
    @pytest.mark.parametrize("method", ["kmeans", "hierarchical", "dbscan"])
    def test_every_point_assigned(self, blobs, method, partition_equal):
        X, truth = blobs
        options = ClusteringOptions(method=method, max_clusters=6, dbscan_eps=2.0, seed=0)
        assignment = ClusteringEngine(options).cluster(X)
        assert assignment.labels.shape == (len(X),)
        assert np.all(assignment.labels >= 0)
        assert assignment.centroids.shape[0] == assignment.n_clusters
        assert partition_equal(assignment.labels, truth)

    def test_fixed_k(self, blobs):
        X, _ = blobs
        assignment = ClusteringEngine(ClusteringOptions(method="kmeans", seed=1)).cluster(X, k=2)
        assert assignment.n_clusters == 2

    def test_identical_vectors_form_one_cluster(self):
        X = np.tile([1.0, 2.0, 3.0], (6, 1))
        assignment = ClusteringEngine(ClusteringOptions(max_clusters=3)).cluster(X, k=3)
        assert assignment.n_clusters == 1
        assert assignment.members() == [list(range(6))]

    def test_k_larger_than_samples(self, blobs):
        X, _ = blobs
        with pytest.raises(DegenerateClusteringError):
            ClusteringEngine().cluster(X[:3], k=4)

    def test_max_clusters_larger_than_samples(self, blobs):
        X, _ = blobs
        with pytest.raises(DegenerateClusteringError):
            ClusteringEngine(ClusteringOptions(max_clusters=8)).cluster(X[:5])

    def test_seeded_runs_are_reproducible(self, blobs):
        X, _ = blobs
        options = ClusteringOptions(method="kmeans", max_clusters=5, seed=11)
        a = ClusteringEngine(options).cluster(X)
        b = ClusteringEngine(options).cluster(X)
        np.testing.assert_array_equal(a.labels, b.labels)


class TestJenks:
    def test_splits_at_largest_gaps(self):
        labels = jenks_natural_breaks([0.9, 0.1, 0.12, 0.5, 0.52, 0.88], 3)
        assert list(labels) == [2, 0, 0, 1, 1, 2]

    def test_fewer_values_than_classes(self):
        assert list(jenks_natural_breaks([0.3, 0.1], 4)) == [1, 0]

    def test_equal_values_share_a_class(self):
        assert list(jenks_natural_breaks([0.2, 0.2, 0.2], 3)) == [0, 0, 0]

    def test_significant_gaps(self):
        assert count_significant_gaps([0.1, 0.11, 0.12, 0.5, 0.51, 0.52]) == 1
        assert count_significant_gaps([0.3]) == 0


class TestOrdering:
    def test_median_order(self):
        rms = [0.9, 0.1, 0.5, 0.45]
        assert median_order([[0], [2, 3], [], [1]], rms) == [[1], [2, 3], [0]]

    def test_farthest_point_invariant(self):
        X = np.random.default_rng(5).normal(size=(12, 3))
        order = farthest_point_order(X)
        assert sorted(order) == list(range(12))

        centroid = X.mean(axis=0, keepdims=True)
        assert order[0] == int(np.argmin(pairwise_distances(X, centroid)[:, 0]))

        d = pairwise_distances(X)
        for step in range(1, len(order)):
            chosen = order[:step]
            remaining = [i for i in range(12) if i not in chosen]
            gap = {i: d[i, chosen].min() for i in remaining}
            assert gap[order[step]] == pytest.approx(max(gap.values()))

    def test_empty(self):
        assert farthest_point_order(np.zeros((0, 2))) == []
