"""Pairwise distances for the supported metrics."""

from typing import Optional, Union

import numpy as np
from scipy.spatial.distance import cdist

from samplezone.core.models import DistanceMetric


def as_matrix(X) -> np.ndarray:
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X[:, np.newaxis]
    return X


def pairwise_distances(
    X,
    Y=None,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
) -> np.ndarray:
    """
    Distance matrix between the rows of X and Y (default: X itself).

    Cosine distance is ``1 - cos(a, b)``; a zero vector has similarity 0
    with everything, so its distance is 1.
    """
    X = as_matrix(X)
    Y = X if Y is None else as_matrix(Y)
    metric = DistanceMetric(metric)

    if metric is DistanceMetric.EUCLIDEAN:
        return cdist(X, Y, "euclidean")

    nx = np.linalg.norm(X, axis=1)
    ny = np.linalg.norm(Y, axis=1)
    denom = np.outer(nx, ny)
    similarity = np.divide(X @ Y.T, denom, out=np.zeros_like(denom), where=denom > 0)
    return np.clip(1.0 - similarity, 0.0, 2.0)


def centroids_for(X: np.ndarray, labels: np.ndarray, n_clusters: Optional[int] = None) -> np.ndarray:
    """Mean row per label 0..n_clusters-1 (zeros for an empty label)."""
    X = as_matrix(X)
    n_clusters = int(labels.max()) + 1 if n_clusters is None else n_clusters
    centroids = np.zeros((n_clusters, X.shape[1]))
    for label in range(n_clusters):
        members = X[labels == label]
        if len(members):
            centroids[label] = members.mean(axis=0)
    return centroids


def relabel_by_first_appearance(labels: np.ndarray) -> np.ndarray:
    """Renumber non-negative labels 0, 1, ... in order of first occurrence."""
    mapping = {}
    out = np.array(labels, dtype=np.int64, copy=True)
    for i, label in enumerate(labels):
        if label < 0:
            continue
        if label not in mapping:
            mapping[label] = len(mapping)
        out[i] = mapping[label]
    return out
