"""
Clustering engine for SampleZone.

Dispatches to k-means, hierarchical or DBSCAN according to
ClusteringOptions and chooses k automatically when none is given.
"""

import logging
import time
from typing import Optional

import numpy as np

from samplezone.clustering.dbscan import dbscan
from samplezone.clustering.distance import as_matrix, centroids_for, relabel_by_first_appearance
from samplezone.clustering.hierarchical import hierarchical
from samplezone.clustering.kmeans import kmeans
from samplezone.clustering.selection import select_k
from samplezone.core.models import ClusterAssignment, ClusteringMethod, ClusteringOptions
from samplezone.utils.errors import DegenerateClusteringError


class ClusteringEngine:
    """
    Clusters feature matrices.

    The caller decides weighting and normalization; the engine only sees
    rows. A single injected Generator drives all random choices.
    """

    def __init__(
        self,
        options: Optional[ClusteringOptions] = None,
        rng: Optional[np.random.Generator] = None,
        max_workers: int = 1,
    ):
        self.options = options or ClusteringOptions()
        self.rng = rng if rng is not None else np.random.default_rng(self.options.seed)
        self.max_workers = max_workers
        self.logger = logging.getLogger("clustering")

    def cluster(self, X: np.ndarray, k: Optional[int] = None) -> ClusterAssignment:
        """
        Cluster the rows of X.

        Args:
            X: Feature matrix, one row per sample
            k: Fixed cluster count; chosen by silhouette when None
               (ignored by DBSCAN)

        Returns:
            ClusterAssignment: Labels 0..n_clusters-1 with every row
            assigned, plus one centroid per label

        Raises:
            DegenerateClusteringError: ``k`` or ``max_clusters`` exceeds the
            sample count, or automatic selection has fewer than 3 samples
        """
        X = as_matrix(X)
        n = X.shape[0]
        opts = self.options
        start_time = time.time()

        if k is not None and not 1 <= k <= n:
            raise DegenerateClusteringError(
                f"Cannot form {k} clusters from {n} samples", n_samples=n, requested=k
            )
        if k is None and opts.method is not ClusteringMethod.DBSCAN:
            opts.validate(n)

        if n == 0:
            raise DegenerateClusteringError("No samples to cluster", n_samples=0)

        if np.all(X == X[0]):
            self.logger.debug("All feature vectors identical; using one cluster")
            return ClusterAssignment(np.zeros(n, dtype=np.int64), X[:1].copy())

        if opts.method is ClusteringMethod.DBSCAN:
            labels = dbscan(X, opts.dbscan_eps, opts.dbscan_min_pts, opts.distance_metric)
        else:
            if k is None:
                k, _ = select_k(
                    X,
                    opts.min_clusters,
                    opts.max_clusters,
                    opts.distance_metric,
                    self.rng,
                    self.max_workers,
                )
            if opts.method is ClusteringMethod.KMEANS:
                labels, _ = kmeans(X, k, opts.distance_metric, opts.max_iterations, self.rng)
                labels = relabel_by_first_appearance(labels)
            else:
                labels = hierarchical(X, k, opts.distance_metric)

        centroids = centroids_for(X, labels)
        self.logger.info(
            f"{opts.method.value}: {n} samples -> {centroids.shape[0]} clusters "
            f"in {time.time() - start_time:.3f}s"
        )
        return ClusterAssignment(labels, centroids)
