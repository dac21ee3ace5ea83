"""
Onset refiner for SampleZone.

Moves a rough onset to the start of the attack (sustained short-time
energy rise) and then onto a nearby rising zero crossing, so the region
can be cut without a click.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from samplezone.core.dsp import clamp, mean_std, short_time_energy

MIN_SLICE_SAMPLES = 16
# How far past a zero crossing the energy must rise above threshold
ENERGY_LOOKAHEAD = 200


class OnsetRefiner:
    """
    Two-stage onset refinement.

    The refined position (before the user offset) always lies within
    ``[rough - search_back, rough + search_forward]``.
    """

    def __init__(
        self,
        search_back_ms: float = 25.0,
        search_forward_ms: float = 10.0,
        energy_win_ms: float = 1.5,
        hold_ms: float = 1.0,
        zc_search_ms: float = 4.0,
        baseline_fraction: float = 0.12,
    ):
        """
        Args:
            search_back_ms: Slice extent before the rough index
            search_forward_ms: Slice extent after the rough index
            energy_win_ms: Short-time energy window
            hold_ms: Time energy must keep rising above threshold
            zc_search_ms: Zero-crossing search radius around the candidate
            baseline_fraction: Leading share of the slice used as noise floor
        """
        self.search_back_ms = search_back_ms
        self.search_forward_ms = search_forward_ms
        self.energy_win_ms = energy_win_ms
        self.hold_ms = hold_ms
        self.zc_search_ms = zc_search_ms
        self.baseline_fraction = baseline_fraction

    @staticmethod
    def sensitivity(threshold: float) -> float:
        """Map the user threshold to the energy threshold multiplier."""
        return clamp(threshold * 3.0, 1.5, 4.0)

    def search_bounds(self, rough: int, sample_rate: int) -> Tuple[int, int]:
        back = max(1, int(self.search_back_ms / 1000.0 * sample_rate))
        fwd = max(1, int(self.search_forward_ms / 1000.0 * sample_rate))
        return rough - back, rough + fwd

    def refine(
        self,
        samples: np.ndarray,
        rough: int,
        sample_rate: int,
        k_sigma: float = 3.0,
        offset_ms: float = 0.0,
    ) -> int:
        """
        Refine one rough onset.

        Args:
            samples: Full mono signal
            rough: Rough onset index into ``samples``
            sample_rate: Sample rate in Hz
            k_sigma: Energy threshold in noise-floor standard deviations
            offset_ms: Shift applied after refinement (negative = earlier)

        Returns:
            int: Cut position clamped to ``[0, len(samples))``
        """
        n = len(samples)
        if n == 0:
            return max(0, rough)

        position = self._refine_unshifted(samples, rough, sample_rate, k_sigma)
        shifted = position + int(offset_ms * sample_rate / 1000.0)
        return int(min(max(shifted, 0), n - 1))

    def _refine_unshifted(
        self, samples: np.ndarray, rough: int, sample_rate: int, k_sigma: float
    ) -> int:
        n = len(samples)
        low, high = self.search_bounds(rough, sample_rate)
        a = max(0, low)
        b = min(n, high)
        if b - a < MIN_SLICE_SAMPLES:
            return rough

        x = np.asarray(samples[a:b], dtype=np.float64)
        win = max(4, int(self.energy_win_ms / 1000.0 * sample_rate))
        ste = short_time_energy(x, win)

        # Noise floor from the leading part of the slice
        span = min(
            max(win * 4, int(self.baseline_fraction * len(x))),
            max(win * 2, len(x) // 3),
        )
        mu0, sd0 = mean_std(ste[:span])
        thr = mu0 + k_sigma * sd0

        hold = max(2, int(self.hold_ms / 1000.0 * sample_rate))
        candidate = self._sustained_rise(ste, thr, hold)
        if candidate is None:
            candidate = rough - a

        radius = max(4, int(self.zc_search_ms / 1000.0 * sample_rate))
        snapped = self._snap_to_rising_zero_crossing(x, ste, thr, candidate, radius)
        return a + snapped

    @staticmethod
    def _sustained_rise(ste: np.ndarray, thr: float, hold: int) -> Optional[int]:
        """Start of the first run of ``hold`` samples above thr and non-falling."""
        rising = (ste[1:] > thr) & (ste[1:] >= ste[:-1])
        if rising.size < hold:
            return None
        runs = np.convolve(rising.astype(np.int32), np.ones(hold, dtype=np.int32), "valid")
        hits = np.flatnonzero(runs == hold)
        return int(hits[0]) + 1 if hits.size else None

    @staticmethod
    def _snap_to_rising_zero_crossing(
        x: np.ndarray, ste: np.ndarray, thr: float, target: int, radius: int
    ) -> int:
        """
        Last qualifying rising crossing before ``target``, else the first
        one at or after it, else ``target``.

        A crossing at i means x[i] <= 0 < x[i + 1]; it qualifies only if
        the energy exceeds ``thr`` within ENERGY_LOOKAHEAD samples.
        """
        n = len(x)
        if n < 2:
            return target

        rising = (x[:-1] <= 0) & (x[1:] > 0)
        above = np.concatenate(([0], np.cumsum(ste > thr)))
        idx = np.arange(n - 1)
        look = np.minimum(n - 1, idx + ENERGY_LOOKAHEAD)
        energised = (idx < look) & (above[look + 1] - above[idx] > 0)
        good = rising & energised

        low = max(0, target - radius)
        high = min(n - 2, target + radius)

        before = np.flatnonzero(good[low:min(target, high)])
        if before.size:
            return low + int(before[-1])

        after = np.flatnonzero(good[max(target, low):high])
        if after.size:
            return max(target, low) + int(after[0])

        return target


def create_onset_refiner(config: Optional[Dict[str, Any]] = None) -> OnsetRefiner:
    """Create an OnsetRefiner from the ``refiner`` config section."""
    config = config or {}
    return OnsetRefiner(
        search_back_ms=config.get("search_back_ms", 25.0),
        search_forward_ms=config.get("search_forward_ms", 10.0),
        energy_win_ms=config.get("energy_win_ms", 1.5),
        hold_ms=config.get("hold_ms", 1.0),
        zc_search_ms=config.get("zc_search_ms", 4.0),
        baseline_fraction=config.get("baseline_fraction", 0.12),
    )
