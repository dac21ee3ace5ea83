"""
Energy onset detector.

Mean absolute amplitude over hopped windows; onsets are local peaks of
the energy series above ``mean + k * std``.
"""

import math
from typing import List

import librosa
import numpy as np

from samplezone.analyzers.onset.base import BaseOnsetDetector
from samplezone.core.dsp import clamp, mean_std, peak_pick


class EnergyOnsetDetector(BaseOnsetDetector):
    """Window-energy peak picking with a 0.25 s minimum spacing."""

    def __init__(
        self,
        window_size: int = 2048,
        hop_size: int = 1024,
        min_spacing_sec: float = 0.25,
    ):
        super().__init__("energy", "1.0.0", min_spacing_sec)
        self.window_size = window_size
        self.hop_size = hop_size

    def sensitivity(self, threshold: float) -> float:
        return clamp(threshold * 2.0, 0.1, 5.0)

    def _detect_impl(
        self, region: np.ndarray, sample_rate: int, threshold: float
    ) -> List[int]:
        if len(region) < self.window_size:
            return []

        frames = librosa.util.frame(
            np.ascontiguousarray(region),
            frame_length=self.window_size,
            hop_length=self.hop_size,
            axis=0,
        )
        energy = np.mean(np.abs(frames), axis=1)
        if energy.size < 3:
            return []

        mu, sigma = mean_std(energy)
        thr = mu + self.sensitivity(threshold) * sigma
        self.logger.debug(f"Energy stats: mean={mu:.6f} std={sigma:.6f} thr={thr:.6f}")

        min_frames = math.ceil(self.min_spacing_samples(sample_rate) / self.hop_size)
        return [i * self.hop_size for i in peak_pick(energy, thr, min_frames)]
