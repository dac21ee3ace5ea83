"""
Clustering algorithms over feature vectors.

Every algorithm takes a 2-D array (one row per sample) and a distance
metric; ClusteringEngine dispatches on ClusteringOptions.
"""

from samplezone.clustering.dbscan import dbscan
from samplezone.clustering.distance import pairwise_distances
from samplezone.clustering.engine import ClusteringEngine
from samplezone.clustering.hierarchical import hierarchical
from samplezone.clustering.jenks import count_significant_gaps, jenks_natural_breaks
from samplezone.clustering.kmeans import kmeans, kmeans_plus_plus
from samplezone.clustering.ordering import farthest_point_order, median_order
from samplezone.clustering.selection import select_k, silhouette_score

__all__ = [
    "ClusteringEngine",
    "pairwise_distances",
    "kmeans",
    "kmeans_plus_plus",
    "hierarchical",
    "dbscan",
    "jenks_natural_breaks",
    "count_significant_gaps",
    "silhouette_score",
    "select_k",
    "median_order",
    "farthest_point_order",
]
