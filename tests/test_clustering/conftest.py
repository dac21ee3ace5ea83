"""Fixtures for clustering tests."""

import numpy as np
import pytest


@pytest.fixture
def blobs():
    """Three tight, well separated 2-D blobs of 5 points each, in order."""
    rng = np.random.default_rng(42)
    centers = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]])
    X = np.vstack([c + rng.normal(0.0, 0.2, size=(5, 2)) for c in centers])
    truth = np.repeat(np.arange(3), 5)
    return X, truth


def same_partition(a, b):
    """True when two labelings group the points identically."""
    a, b = np.asarray(a), np.asarray(b)
    return all(
        len(set(b[a == label])) == 1 and len(set(a[b == b[a == label][0]])) == 1
        for label in np.unique(a)
    )


@pytest.fixture
def partition_equal():
    return same_partition
