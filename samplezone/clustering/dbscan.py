"""
DBSCAN with noise reassignment.

Every sample has to land in some velocity layer, so points DBSCAN leaves
as noise are attached to the cluster with the nearest centroid.
"""

import logging
from typing import Union

import numpy as np
from sklearn.cluster import DBSCAN

from samplezone.clustering.distance import as_matrix, centroids_for, pairwise_distances, relabel_by_first_appearance
from samplezone.core.models import ClusterAssignment, DistanceMetric

logger = logging.getLogger(__name__)


def dbscan(
    X: np.ndarray,
    eps: float = 0.5,
    min_pts: int = 2,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
    reassign_noise: bool = True,
) -> np.ndarray:
    """
    Density clustering.

    Args:
        X: One row per sample
        eps: Neighbourhood radius
        min_pts: Neighbours (not counting the point itself) a core point needs
        metric: Distance metric
        reassign_noise: Attach noise points to the nearest cluster centroid

    Returns:
        np.ndarray: Labels numbered by first appearance; NOISE (-1) only
        when ``reassign_noise`` is False. If no cluster forms at all, every
        point is placed in cluster 0.
    """
    X = as_matrix(X)
    distances = pairwise_distances(X, metric=metric)
    raw = DBSCAN(eps=eps, min_samples=min_pts + 1, metric="precomputed").fit(distances).labels_
    labels = relabel_by_first_appearance(raw)

    noise = labels == ClusterAssignment.NOISE
    if not reassign_noise or not noise.any():
        return labels

    if noise.all():
        logger.debug("DBSCAN found no dense region; using a single cluster")
        return np.zeros(len(labels), dtype=np.int64)

    centroids = centroids_for(X[~noise], labels[~noise])
    nearest = np.argmin(pairwise_distances(X[noise], centroids, metric), axis=1)
    labels[noise] = nearest
    logger.debug(f"Reassigned {int(noise.sum())} noise points")
    return labels
