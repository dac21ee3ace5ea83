"""
Multiscale time-domain onset detector.

Works per sample without framing: at lags of 1, 2, 4 and 8 ms it compares
a fast and a slow envelope of |x[n] - x[n - lag]| and sums the positive
excess across scales.
"""

from typing import List, Sequence

import numpy as np

from samplezone.analyzers.onset.base import BaseOnsetDetector
from samplezone.core.dsp import clamp, mean_std, moving_average, peak_pick, zero_phase_smooth

MIN_REGION_SAMPLES = 2000


class MultiscaleOnsetDetector(BaseOnsetDetector):
    """Dual-envelope multi-lag differences with a 25 ms refractory period."""

    def __init__(
        self,
        scales_ms: Sequence[float] = (1.0, 2.0, 4.0, 8.0),
        smooth_radius: int = 16,
        refractory_ms: float = 25.0,
    ):
        super().__init__("multiscale", "1.0.0", refractory_ms / 1000.0)
        self.scales_ms = tuple(scales_ms)
        self.smooth_radius = smooth_radius

    def sensitivity(self, threshold: float) -> float:
        return clamp(threshold * 5.0, 0.1, 5.0)

    def novelty(self, region: np.ndarray, sample_rate: int) -> np.ndarray:
        n = len(region)
        novelty = np.zeros(n)

        for ms in self.scales_ms:
            lag = max(1, int(ms / 1000.0 * sample_rate))
            if lag >= n:
                continue

            adiff = np.zeros(n)
            adiff[lag:] = np.abs(region[lag:] - region[:-lag])

            fast_radius = max(1, lag // 2)
            slow_radius = max(fast_radius + 1, lag * 4)
            excess = moving_average(adiff, fast_radius) - moving_average(adiff, slow_radius)
            novelty += np.maximum(excess, 0.0)

        return zero_phase_smooth(novelty, self.smooth_radius)

    def _detect_impl(
        self, region: np.ndarray, sample_rate: int, threshold: float
    ) -> List[int]:
        if len(region) < MIN_REGION_SAMPLES:
            return []

        novelty = self.novelty(region, sample_rate)
        mu, sigma = mean_std(novelty)
        thr = mu + self.sensitivity(threshold) * sigma
        self.logger.debug(f"Novelty stats: mean={mu:.6f} std={sigma:.6f} thr={thr:.6f}")

        return peak_pick(novelty, thr, self.min_spacing_samples(sample_rate))
