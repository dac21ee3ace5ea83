"""
Cluster-quality scoring and automatic choice of k.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Tuple, Union

import numpy as np
from sklearn.metrics import silhouette_samples

from samplezone.clustering.distance import as_matrix, pairwise_distances
from samplezone.clustering.kmeans import kmeans
from samplezone.core.models import DistanceMetric
from samplezone.utils.errors import DegenerateClusteringError

MIN_SILHOUETTE_SAMPLES = 3
SELECTION_MAX_ITER = 50

logger = logging.getLogger(__name__)


def silhouette_score(
    X: np.ndarray,
    labels: np.ndarray,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
) -> float:
    """
    Mean silhouette ``(b - a) / max(a, b)`` over all points.

    Points in singleton clusters score 0. A labelling with one cluster,
    or with every point on its own, scores 0.
    """
    labels = np.asarray(labels)
    n_labels = len(np.unique(labels))
    if not 2 <= n_labels <= len(labels) - 1:
        return 0.0
    distances = pairwise_distances(X, metric=metric)
    return float(np.mean(silhouette_samples(distances, labels, metric="precomputed")))


def select_k(
    X: np.ndarray,
    min_k: int,
    max_k: int,
    metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN,
    rng: Optional[np.random.Generator] = None,
    max_workers: int = 1,
    max_iter: int = SELECTION_MAX_ITER,
) -> Tuple[int, Dict[int, float]]:
    """
    Pick the k in ``[min_k, max_k]`` whose k-means labelling has the
    highest silhouette; ties go to the smaller k.

    Candidate runs are independent and run on a thread pool when
    ``max_workers > 1``. Their seeds are drawn from ``rng`` up front, so
    the result does not depend on scheduling.

    Returns:
        Tuple[int, Dict[int, float]]: (best k, score per candidate k)

    Raises:
        DegenerateClusteringError: Fewer than 3 samples
    """
    X = as_matrix(X)
    n = X.shape[0]
    if n < MIN_SILHOUETTE_SAMPLES:
        raise DegenerateClusteringError(
            f"Silhouette analysis needs at least {MIN_SILHOUETTE_SAMPLES} samples, got {n}",
            n_samples=n,
            requested=max_k,
        )

    rng = rng or np.random.default_rng()
    low = max(1, min_k)
    high = min(max_k, n)
    candidates = list(range(low, high + 1)) or [min(low, n)]
    seeds = rng.integers(0, 2**32 - 1, size=len(candidates))

    def score(k: int, seed: int) -> float:
        labels, _ = kmeans(X, k, metric, max_iter, np.random.default_rng(seed))
        return silhouette_score(X, labels, metric)

    if max_workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(score, candidates, seeds))
    else:
        results = [score(k, s) for k, s in zip(candidates, seeds)]

    scores = dict(zip(candidates, results))
    best_k = candidates[int(np.argmax(results))]
    logger.debug(f"Silhouette scores {scores}; chose k={best_k}")
    return best_k, scores
