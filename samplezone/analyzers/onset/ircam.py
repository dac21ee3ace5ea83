"""
IRCAM-style onset detector.

Tracks three per-frame spectral descriptors (normalised centroid,
local-peak count and the share of energy above 2 kHz) and treats their
rising edges as onset evidence.
"""

import math
from typing import List, Tuple

import numpy as np

from samplezone.analyzers.onset.base import BaseOnsetDetector
from samplezone.core.dsp import clamp, mean_std, peak_pick, subtract_baseline, zero_phase_smooth
from samplezone.core.spectral import SpectralFrontEnd

DESCRIPTOR_WEIGHTS = (0.5, 0.3, 0.2)  # centroid, peak count, HF ratio
HF_CUTOFF_HZ = 2000.0


def frame_descriptors(
    mags: np.ndarray, freqs: np.ndarray, sample_rate: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-frame centroid / Nyquist, local-peak count and HF energy ratio."""
    nyquist = sample_rate / 2.0
    total = mags.sum(axis=1)
    safe_total = np.where(total > 0, total, 1.0)

    centroid = np.where(total > 0, (mags @ freqs) / safe_total / nyquist, 0.0)
    hf_ratio = np.where(
        total > 0, mags[:, freqs >= HF_CUTOFF_HZ].sum(axis=1) / safe_total, 0.0
    )

    inner = mags[:, 1:-1]
    is_peak = (inner > mags[:, :-2]) & (inner > mags[:, 2:])
    peak_count = is_peak.sum(axis=1).astype(np.float64)

    return centroid, peak_count, hf_ratio


class IrcamOnsetDetector(BaseOnsetDetector):
    """Weighted positive deltas of smoothed spectral descriptors."""

    def __init__(
        self,
        win_size: int = 2048,
        hop_size: int = 256,
        smooth_radius: int = 3,
        baseline_radius: int = 10,
        min_separation_frames: int = 2,
        min_spacing_sec: float = 0.25,
    ):
        super().__init__("ircam", "1.0.0", min_spacing_sec)
        self.front_end = SpectralFrontEnd(win_size, hop_size, log_compress=True)
        self.smooth_radius = smooth_radius
        self.baseline_radius = baseline_radius
        self.min_separation_frames = min_separation_frames

    def sensitivity(self, threshold: float) -> float:
        return clamp(threshold * 3.0, 0.1, 3.0)

    def novelty(self, mags: np.ndarray, sample_rate: int) -> np.ndarray:
        descriptors = frame_descriptors(
            mags, self.front_end.frequencies(sample_rate), sample_rate
        )
        novelty = np.zeros(mags.shape[0])
        for weight, series in zip(DESCRIPTOR_WEIGHTS, descriptors):
            smoothed = zero_phase_smooth(series, self.smooth_radius)
            novelty[1:] += weight * np.maximum(np.diff(smoothed), 0.0)
        return novelty

    def _detect_impl(
        self, region: np.ndarray, sample_rate: int, threshold: float
    ) -> List[int]:
        mags = self.front_end.frames(region)
        if mags.shape[0] < 3:
            return []

        curve = subtract_baseline(self.novelty(mags, sample_rate), self.baseline_radius)
        mu, sigma = mean_std(curve)
        thr = mu + self.sensitivity(threshold) * sigma
        self.logger.debug(f"Novelty stats: mean={mu:.6f} std={sigma:.6f} thr={thr:.6f}")

        spacing_frames = math.ceil(self.min_spacing_samples(sample_rate) / self.front_end.hop_size)
        peaks = peak_pick(curve, thr, max(self.min_separation_frames, spacing_frames))
        return [self.front_end.frame_position(f) for f in peaks]
