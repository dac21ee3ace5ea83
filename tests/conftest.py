"""Shared fixtures: synthetic signals and WAV files."""

import numpy as np
import pytest
import soundfile as sf

from samplezone.core.models import ANALYSIS_SAMPLE_RATE, AudioSignal, SampleFeatures

SR = ANALYSIS_SAMPLE_RATE
BURST_TIMES = (0.5, 1.0, 1.5, 2.0)


def burst_train(times=BURST_TIMES, duration=2.5, amplitude=0.8, seed=0):
    """Low noise floor with decaying noise bursts starting at ``times``."""
    rng = np.random.default_rng(seed)
    x = rng.normal(0.0, 1e-4, int(duration * SR))
    length = int(0.05 * SR)
    envelope = np.exp(-np.arange(length) / (0.01 * SR))
    for t in times:
        start = int(t * SR)
        x[start:start + length] += amplitude * envelope * rng.uniform(-1, 1, length)
    return x.astype(np.float32)


def tone(freq=1000.0, duration=1.0, amplitude=0.5):
    t = np.arange(int(duration * SR)) / SR
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def features_with(rms, centroid=1000.0, seed=None):
    """SampleFeatures with the given loudness and (optionally random) timbre."""
    rng = np.random.default_rng(seed)
    jitter = rng.normal(0.0, 1.0, 8) if seed is not None else np.zeros(8)
    return SampleFeatures(
        rms=rms,
        peak=min(1.0, rms * 3.0),
        dynamic_range_db=9.5,
        spectral_centroid_hz=centroid + 50.0 * jitter[0],
        spectral_rolloff_hz=2.0 * centroid + 80.0 * jitter[1],
        spectral_bandwidth_hz=800.0 + 30.0 * jitter[2],
        spectral_flatness=0.1 + 0.01 * abs(jitter[3]),
        spectral_flux=5.0 + jitter[4],
        zero_crossing_rate=0.05 + 0.002 * abs(jitter[5]),
        attack_time_sec=0.002 + 0.0005 * abs(jitter[6]),
        temporal_centroid=0.3 + 0.01 * jitter[7],
    )


@pytest.fixture
def burst_signal():
    """2.5 s signal with bursts at 0.5, 1.0, 1.5 and 2.0 s."""
    return AudioSignal(burst_train(), SR, "bursts")


@pytest.fixture
def silence():
    return AudioSignal(np.zeros(SR, dtype=np.float32), SR, "silence")


@pytest.fixture
def tone_signal():
    return AudioSignal(tone(), SR, "tone")


@pytest.fixture
def write_wav(tmp_path):
    """Write samples (frames x channels or mono) to a WAV file in tmp_path."""

    def _write(name, samples, sample_rate=SR):
        path = tmp_path / name
        sf.write(str(path), np.asarray(samples, dtype=np.float32), sample_rate)
        return path

    return _write


@pytest.fixture
def make_features():
    return features_with


@pytest.fixture
def make_tone():
    return tone


@pytest.fixture
def make_bursts():
    return burst_train
