"""Tests for the shared DSP helpers and the spectral front end."""

import numpy as np
import pytest

from samplezone.core.dsp import (
    enforce_min_spacing,
    mean_std,
    moving_average,
    peak_pick,
    short_time_energy,
    subtract_baseline,
    zero_phase_smooth,
)
from samplezone.core.spectral import (
    SpectralFrontEnd,
    bin_frequencies,
    magnitude_spectrum,
    next_power_of_two,
    spectrogram,
    validate_window_size,
)
from samplezone.utils.errors import ConfigurationError


class TestSmoothing:
    def test_moving_average_keeps_constants(self):
        np.testing.assert_allclose(moving_average(np.full(20, 3.0), 4), 3.0)

    def test_moving_average_shrinks_at_edges(self):
        out = moving_average(np.array([0.0, 0.0, 9.0]), 1)
        np.testing.assert_allclose(out, [0.0, 3.0, 4.5])

    def test_zero_phase_smooth_is_symmetric(self):
        impulse = np.zeros(21)
        impulse[10] = 1.0
        out = zero_phase_smooth(impulse, 3)
        np.testing.assert_allclose(out, out[::-1])
        assert int(np.argmax(out)) == 10

    def test_short_time_energy(self):
        np.testing.assert_allclose(short_time_energy(np.full(10, 2.0), 4), 4.0)

    def test_subtract_baseline_is_non_negative(self):
        x = np.random.default_rng(0).normal(size=100)
        assert np.all(subtract_baseline(x, 5) >= 0)

    def test_mean_std_population(self):
        assert mean_std(np.array([1.0, 3.0])) == (2.0, 1.0)
        assert mean_std(np.array([])) == (0.0, 0.0)


class TestPeakPicking:
    def test_strict_maxima_above_threshold(self):
        x = np.array([0, 2, 0, 1, 0, 3, 3, 0], dtype=float)
        # plateau at 5-6 is not a strict maximum
        assert peak_pick(x, 0.5, 1) == [1, 3]

    def test_minimum_separation(self):
        x = np.zeros(30)
        x[[5, 8, 20]] = [1.0, 2.0, 1.0]
        peaks = peak_pick(x, 0.1, 5)
        assert peaks == [5, 20]

    def test_enforce_min_spacing(self):
        kept = enforce_min_spacing([100, 0, 50, 120, 100, 300], 100)
        assert kept == [0, 100, 300]
        assert all(b - a >= 100 for a, b in zip(kept, kept[1:]))


class TestSpectral:
    @pytest.mark.parametrize("size", [512, 1000, 3000])
    def test_invalid_window_sizes(self, size):
        with pytest.raises(ConfigurationError):
            validate_window_size(size)

    def test_next_power_of_two(self):
        assert next_power_of_two(10) == 1024
        assert next_power_of_two(1025) == 2048
        assert next_power_of_two(3000, minimum=2048) == 4096

    def test_magnitude_spectrum_peaks_at_tone(self, make_tone):
        frame = make_tone(freq=1000.0)[:4096]
        mags = magnitude_spectrum(frame, 4096)
        freqs = bin_frequencies(4096, 44100)
        assert mags.shape == (2049,)
        assert abs(freqs[int(np.argmax(mags))] - 1000.0) < 44100 / 4096

    def test_spectrogram_shape(self, make_tone):
        mags = spectrogram(make_tone(), 2048, 512)
        assert mags.shape == (1 + (44100 - 2048) // 512, 1025)

    def test_spectrogram_short_region_is_empty(self):
        assert spectrogram(np.zeros(100), 2048, 256).shape == (0, 1025)

    def test_front_end_frame_positions(self):
        front_end = SpectralFrontEnd(2048, 256)
        assert front_end.frame_position(3, start=100) == 100 + 3 * 256
