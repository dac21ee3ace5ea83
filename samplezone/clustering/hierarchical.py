"""Average-linkage agglomerative clustering on a precomputed distance matrix."""

from typing import Union

import numpy as np
from sklearn.cluster import AgglomerativeClustering

from samplezone.clustering.distance import as_matrix, pairwise_distances, relabel_by_first_appearance
from samplezone.core.models import DistanceMetric
from samplezone.utils.errors import DegenerateClusteringError


def hierarchical(
    X: np.ndarray,
    k: int,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
) -> np.ndarray:
    """
    Merge clusters by minimum mean inter-member distance until ``k`` remain.

    Returns:
        np.ndarray: Labels numbered by first appearance
    """
    X = as_matrix(X)
    n = X.shape[0]
    if not 1 <= k <= n:
        raise DegenerateClusteringError(
            f"Cannot form {k} clusters from {n} samples", n_samples=n, requested=k
        )
    if k == 1:
        return np.zeros(n, dtype=np.int64)
    if k == n:
        return np.arange(n, dtype=np.int64)

    model = AgglomerativeClustering(
        n_clusters=k, metric="precomputed", linkage="average"
    )
    labels = model.fit_predict(pairwise_distances(X, metric=metric))
    return relabel_by_first_appearance(labels)
