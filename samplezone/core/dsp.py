"""
Small signal helpers shared by the onset detectors and the refiner.

All functions are pure and return new arrays.
"""

from typing import Iterable, List, Tuple

import numpy as np


def mean_std(x: np.ndarray) -> Tuple[float, float]:
    """Mean and population standard deviation; (0, 0) for empty input."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return 0.0, 0.0
    return float(np.mean(x)), float(np.std(x))


def moving_average(x: np.ndarray, radius: int) -> np.ndarray:
    """
    Centered moving average over ``2 * radius + 1`` samples.

    The window shrinks at the edges instead of padding, so the output
    has the same length as the input and no edge bias toward zero.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    if radius <= 0 or n == 0:
        return x.copy()

    prefix = np.concatenate(([0.0], np.cumsum(x)))
    idx = np.arange(n)
    lo = np.maximum(0, idx - radius)
    hi = np.minimum(n, idx + radius + 1)
    return (prefix[hi] - prefix[lo]) / (hi - lo)


def zero_phase_smooth(x: np.ndarray, radius: int) -> np.ndarray:
    """Moving average applied forward, then again over the reversed result."""
    if radius <= 0:
        return np.asarray(x, dtype=np.float64).copy()
    forward = moving_average(x, radius)
    return moving_average(forward[::-1], radius)[::-1].copy()


def short_time_energy(x: np.ndarray, win: int) -> np.ndarray:
    """Centered moving average of the squared signal (radius ``win // 2``)."""
    x = np.asarray(x, dtype=np.float64)
    if win <= 1:
        return x * x
    return moving_average(x * x, win // 2)


def subtract_baseline(novelty: np.ndarray, radius: int) -> np.ndarray:
    """Remove a local moving-average baseline and half-wave rectify."""
    return np.maximum(novelty - moving_average(novelty, radius), 0.0)


def peak_pick(x: np.ndarray, threshold: float, min_separation: int) -> List[int]:
    """
    Indices of strict local maxima above ``threshold``.

    Peaks are accepted left to right; a peak closer than
    ``min_separation`` to the previously accepted one is dropped.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size < 3:
        return []

    center = x[1:-1]
    is_peak = (center > threshold) & (center > x[:-2]) & (center > x[2:])
    candidates = np.flatnonzero(is_peak) + 1

    peaks: List[int] = []
    last = -max(min_separation, 1)
    for i in candidates:
        if i - last >= min_separation:
            peaks.append(int(i))
            last = int(i)
    return peaks


def enforce_min_spacing(positions: Iterable[int], min_spacing: int) -> List[int]:
    """
    Sort positions and drop any closer than ``min_spacing`` to the last kept.

    The result satisfies ``|a - b| >= min_spacing`` for every pair.
    """
    kept: List[int] = []
    for pos in sorted(set(int(p) for p in positions)):
        if not kept or pos - kept[-1] >= min_spacing:
            kept.append(pos)
    return kept


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
