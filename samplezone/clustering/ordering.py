"""Orderings applied to clustering output."""

from typing import List, Sequence, Union

import numpy as np

from samplezone.clustering.distance import as_matrix, pairwise_distances
from samplezone.core.models import DistanceMetric


def median_order(clusters: Sequence[Sequence[int]], values: Sequence[float]) -> List[List[int]]:
    """
    Sort clusters by the median of ``values`` over their members,
    ascending. Empty clusters are dropped.
    """
    values = np.asarray(values, dtype=np.float64)
    non_empty = [list(c) for c in clusters if len(c)]
    return sorted(non_empty, key=lambda members: float(np.median(values[members])))


def farthest_point_order(
    X: np.ndarray,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
) -> List[int]:
    """
    Round-robin order for the rows of X.

    Starts with the row nearest the centroid, then repeatedly takes the
    row whose distance to the nearest already-taken row is largest.
    Ties go to the lowest row index.
    """
    X = as_matrix(X)
    n = X.shape[0]
    if n == 0:
        return []

    centroid = X.mean(axis=0, keepdims=True)
    start = int(np.argmin(pairwise_distances(X, centroid, metric)[:, 0]))
    distances = pairwise_distances(X, metric=metric)

    order = [start]
    taken = np.zeros(n, dtype=bool)
    taken[start] = True
    nearest = distances[start].copy()

    while len(order) < n:
        candidates = np.where(taken, -np.inf, nearest)
        nxt = int(np.argmax(candidates))
        order.append(nxt)
        taken[nxt] = True
        nearest = np.minimum(nearest, distances[nxt])

    return order
