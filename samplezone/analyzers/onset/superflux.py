"""
SuperFlux onset detector.

Log-magnitude spectral flux measured against a per-bin maximum over the
previous frames, which suppresses vibrato and tremolo false positives.
"""

import math
from typing import List

import numpy as np
from scipy.ndimage import maximum_filter1d

from samplezone.analyzers.onset.base import BaseOnsetDetector
from samplezone.core.dsp import clamp, mean_std, peak_pick, subtract_baseline, zero_phase_smooth
from samplezone.core.spectral import SpectralFrontEnd


class SuperFluxOnsetDetector(BaseOnsetDetector):
    """
    SuperFlux with zero-phase smoothing and local baseline removal.

    Frame parameters: 2048-sample window, 256-sample hop, 3-frame
    max-filter look-back.
    """

    def __init__(
        self,
        win_size: int = 2048,
        hop_size: int = 256,
        max_filter_lookback: int = 3,
        smooth_radius: int = 3,
        baseline_radius: int = 10,
        min_separation_frames: int = 2,
        min_spacing_sec: float = 0.25,
    ):
        super().__init__("superflux", "1.0.0", min_spacing_sec)
        self.front_end = SpectralFrontEnd(win_size, hop_size, log_compress=True)
        self.max_filter_lookback = max_filter_lookback
        self.smooth_radius = smooth_radius
        self.baseline_radius = baseline_radius
        self.min_separation_frames = min_separation_frames

    def sensitivity(self, threshold: float) -> float:
        return clamp(threshold * 3.0, 0.1, 3.0)

    def novelty(self, mags: np.ndarray) -> np.ndarray:
        """Positive flux of each frame against the recent per-bin maximum."""
        n_frames = mags.shape[0]
        novelty = np.zeros(n_frames)
        if n_frames < 2:
            return novelty

        # recent_max[j] = max(mags[j - lookback + 1 .. j]) per bin
        lookback = self.max_filter_lookback
        recent_max = maximum_filter1d(
            mags, size=lookback, axis=0, origin=(lookback - 1) // 2, mode="nearest"
        )
        rises = mags[1:] - recent_max[:-1]
        novelty[1:] = np.maximum(rises, 0.0).sum(axis=1)
        return novelty

    def _detect_impl(
        self, region: np.ndarray, sample_rate: int, threshold: float
    ) -> List[int]:
        mags = self.front_end.frames(region)
        if mags.shape[0] < 3:
            return []

        novelty = zero_phase_smooth(self.novelty(mags), self.smooth_radius)
        curve = subtract_baseline(novelty, self.baseline_radius)

        mu, sigma = mean_std(curve)
        thr = mu + self.sensitivity(threshold) * sigma
        self.logger.debug(f"Novelty stats: mean={mu:.6f} std={sigma:.6f} thr={thr:.6f}")

        spacing_frames = math.ceil(self.min_spacing_samples(sample_rate) / self.front_end.hop_size)
        peaks = peak_pick(curve, thr, max(self.min_separation_frames, spacing_frames))
        return [self.front_end.frame_position(f) for f in peaks]
