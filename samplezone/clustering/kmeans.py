"""
k-means with k-means++ seeding.

Randomness comes only from the injected numpy Generator, so a fixed seed
gives identical assignments.
"""

from typing import Optional, Tuple, Union

import numpy as np

from samplezone.clustering.distance import as_matrix, pairwise_distances
from samplezone.core.models import DistanceMetric
from samplezone.utils.errors import DegenerateClusteringError


def kmeans_plus_plus(
    X: np.ndarray,
    k: int,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Choose ``k`` initial centroids from the rows of X.

    The first is uniform; each next one is drawn with probability
    proportional to the squared distance to the nearest chosen centroid.
    When every row coincides with a chosen centroid the next unused row
    is taken instead.
    """
    X = as_matrix(X)
    rng = rng or np.random.default_rng()
    n = X.shape[0]

    chosen = [int(rng.integers(n))]
    nearest = pairwise_distances(X, X[chosen], metric)[:, 0] ** 2

    while len(chosen) < k:
        total = nearest.sum()
        if total > 0:
            index = int(rng.choice(n, p=nearest / total))
        else:
            unused = [i for i in range(n) if i not in chosen]
            index = unused[0] if unused else chosen[-1]
        chosen.append(index)
        d = pairwise_distances(X, X[index:index + 1], metric)[:, 0] ** 2
        nearest = np.minimum(nearest, d)

    return X[chosen].copy()


def kmeans(
    X: np.ndarray,
    k: int,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
    max_iter: int = 200,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Lloyd iterations until assignments stop changing or ``max_iter``.

    Ties go to the lowest centroid index; an empty cluster keeps its
    previous centroid.

    Returns:
        Tuple[np.ndarray, np.ndarray]: (labels, centroids)

    Raises:
        DegenerateClusteringError: ``k`` is not in ``[1, n_samples]``
    """
    X = as_matrix(X)
    n = X.shape[0]
    if not 1 <= k <= n:
        raise DegenerateClusteringError(
            f"Cannot form {k} clusters from {n} samples", n_samples=n, requested=k
        )

    centroids = kmeans_plus_plus(X, k, metric, rng)
    labels = np.full(n, -1, dtype=np.int64)

    for _ in range(max_iter):
        assigned = np.argmin(pairwise_distances(X, centroids, metric), axis=1)
        if np.array_equal(assigned, labels):
            break
        labels = assigned
        for c in range(k):
            members = X[labels == c]
            if len(members):
                centroids[c] = members.mean(axis=0)

    return labels, centroids
