"""
One-dimensional natural breaks.

Partitions sorted values at their largest gaps; used to split recordings
into loudness classes.
"""

import numpy as np

SIGNIFICANT_GAP_FACTOR = 5.0
MIN_GAP = 1e-6


def jenks_natural_breaks(values, n_classes: int) -> np.ndarray:
    """
    Class label per value, 0 for the lowest class.

    Breaks go at the ``n_classes - 1`` largest gaps between consecutive
    sorted values (earlier gap wins a tie). Zero gaps are never split, so
    equal values share a class and fewer classes may result. With no more
    values than classes every distinct value gets its own class.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    n = values.size
    labels = np.zeros(n, dtype=np.int64)
    if n == 0 or n_classes <= 1:
        return labels

    order = np.argsort(values, kind="stable")
    gaps = np.diff(values[order])

    if n <= n_classes:
        breaks = np.flatnonzero(gaps > 0)
    else:
        ranked = np.argsort(-gaps, kind="stable")[:n_classes - 1]
        breaks = np.sort(ranked[gaps[ranked] > 0])

    # class of the i-th sorted value = number of breaks before it
    sorted_labels = np.searchsorted(breaks, np.arange(n), side="left")
    labels[order] = sorted_labels
    return labels


def count_significant_gaps(values, factor: float = SIGNIFICANT_GAP_FACTOR) -> int:
    """
    Number of gaps between sorted values that exceed ``factor`` times the
    median gap (and a small absolute floor).
    """
    values = np.sort(np.asarray(values, dtype=np.float64).ravel())
    if values.size < 2:
        return 0
    gaps = np.diff(values)
    cutoff = max(factor * float(np.median(gaps)), MIN_GAP)
    return int(np.count_nonzero(gaps > cutoff))
