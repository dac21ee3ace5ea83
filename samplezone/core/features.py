"""
Feature extractor for SampleZone.

Computes the per-recording descriptors used for grouping: loudness over
the whole signal, spectral shape and MFCCs over an onset-anchored attack
window, and the temporal centroid of the overall envelope.
"""

import logging
import math
from typing import Any, Dict, Optional, Tuple

import librosa
import numpy as np

from samplezone.core.models import N_MFCC, AudioSignal, SampleFeatures
from samplezone.core.spectral import bin_frequencies, magnitude_spectrum, next_power_of_two, spectrogram
from samplezone.utils.errors import EmptyInputError, FeatureExtractionError, SampleZoneError

# Attack detection framing
ONSET_FRAME = 1024
ONSET_HOP = 256
ATTACK_SEARCH_SEC = 0.1
ATTACK_LEVEL = 0.9

# Spectral flux framing inside the attack window
FLUX_FRAME = 1024
FLUX_HOP = 512

# Temporal-centroid envelope
ENVELOPE_BLOCK = 256
ENVELOPE_HOP = 128

MIN_SPECTRUM_SIZE = 2048
ROLLOFF_PERCENT = 0.85
FLATNESS_EPS = 1e-12
MEL_ENERGY_FLOOR = 1e-10

logger = logging.getLogger(__name__)


def _finite(value: float, default: float = 0.0) -> float:
    value = float(value)
    return value if math.isfinite(value) else default


def detect_attack(
    samples: np.ndarray,
    sample_rate: int,
    rms_floor: float = 0.02,
) -> Tuple[int, float]:
    """
    Locate the attack of a recording.

    The onset is the start of the first 1024-sample frame (hop 256) whose
    RMS exceeds ``rms_floor``, or 0 if none does. The attack time is the
    time from the onset until |x| first reaches 90% of its peak within
    the following 100 ms.

    Returns:
        Tuple[int, float]: (onset index, attack time in seconds)
    """
    x = np.asarray(samples, dtype=np.float64)
    onset = 0
    if len(x) >= ONSET_FRAME:
        rms = librosa.feature.rms(
            y=x, frame_length=ONSET_FRAME, hop_length=ONSET_HOP, center=False
        )[0]
        above = np.flatnonzero(rms > rms_floor)
        if above.size:
            onset = int(above[0]) * ONSET_HOP

    segment = np.abs(x[onset:onset + int(ATTACK_SEARCH_SEC * sample_rate)])
    if segment.size == 0 or segment.max() <= 0:
        return onset, 0.0

    reached = np.flatnonzero(segment >= ATTACK_LEVEL * segment.max())
    return onset, float(reached[0]) / sample_rate


def spectral_shape(window: np.ndarray, sample_rate: int) -> Dict[str, float]:
    """
    Centroid, bandwidth, 85% rolloff and flatness of one magnitude spectrum.

    The window is zero-padded to a power of two of at least 2048 samples.
    A spectrum with no energy yields zeros.
    """
    n_fft = next_power_of_two(len(window), MIN_SPECTRUM_SIZE)
    mags = magnitude_spectrum(window, n_fft)
    if mags.sum() <= 0:
        return {"centroid": 0.0, "bandwidth": 0.0, "rolloff": 0.0, "flatness": 0.0}

    S = mags[:, np.newaxis]
    freq = bin_frequencies(n_fft, sample_rate)
    centroid = librosa.feature.spectral_centroid(S=S, freq=freq)
    bandwidth = librosa.feature.spectral_bandwidth(S=S, freq=freq, centroid=centroid)
    rolloff = librosa.feature.spectral_rolloff(S=S, freq=freq, roll_percent=ROLLOFF_PERCENT)
    flatness = librosa.feature.spectral_flatness(S=S, power=1.0, amin=FLATNESS_EPS)

    return {
        "centroid": _finite(centroid[0, 0]),
        "bandwidth": _finite(bandwidth[0, 0]),
        "rolloff": _finite(rolloff[0, 0]),
        "flatness": _finite(flatness[0, 0]),
    }


def spectral_flux(window: np.ndarray) -> float:
    """Mean over frame pairs of the summed positive magnitude differences."""
    mags = spectrogram(window, FLUX_FRAME, FLUX_HOP)
    if mags.shape[0] < 2:
        return 0.0
    rises = np.maximum(np.diff(mags, axis=0), 0.0).sum(axis=1)
    return _finite(rises.mean())


def zero_crossing_rate(x: np.ndarray) -> float:
    """Sign changes per sample pair; zero counts as positive."""
    if len(x) < 2:
        return 0.0
    crossings = librosa.zero_crossings(np.asarray(x), pad=False, zero_pos=True)
    return float(np.count_nonzero(crossings)) / (len(x) - 1)


def temporal_centroid(samples: np.ndarray) -> float:
    """
    Energy-weighted mean block index of the RMS envelope, in [0, 1).

    Blocks are 256 samples with hop 128; the trailing partial block is
    included. A silent signal sits at 0.5.
    """
    x = np.asarray(samples, dtype=np.float64)
    if x.size == 0:
        return 0.0
    starts = np.arange(0, len(x), ENVELOPE_HOP)
    envelope = np.array([
        np.sqrt(np.mean(x[s:s + ENVELOPE_BLOCK] ** 2)) for s in starts
    ])
    total = envelope.sum()
    if total <= 0:
        return 0.5
    weighted = np.dot(np.arange(envelope.size), envelope)
    return _finite(weighted / total / envelope.size)


def mfcc(
    window: np.ndarray,
    sample_rate: int,
    n_mfcc: int = N_MFCC,
    n_mels: int = 26,
) -> np.ndarray:
    """
    MFCCs of a single spectrum: HTK mel filterbank on the power spectrum,
    natural log, then an orthonormal type-II DCT.
    """
    n_fft = next_power_of_two(len(window), MIN_SPECTRUM_SIZE)
    power = magnitude_spectrum(window, n_fft) ** 2
    mel_basis = librosa.filters.mel(
        sr=sample_rate, n_fft=n_fft, n_mels=n_mels, htk=True, norm=None
    )
    log_mel = np.log(np.maximum(mel_basis @ power, MEL_ENERGY_FLOOR))
    coeffs = librosa.feature.mfcc(
        S=log_mel[:, np.newaxis], n_mfcc=n_mfcc, dct_type=2, norm="ortho"
    )
    return np.nan_to_num(coeffs[:, 0], nan=0.0, posinf=0.0, neginf=0.0)


class FeatureExtractor:
    """
    Extracts SampleFeatures from prepared signals.

    Holds configuration only; extract() is pure and safe to call from
    several threads at once.
    """

    def __init__(
        self,
        window_ms: float = 256.0,
        adaptive_window: bool = False,
        onset_rms_floor: float = 0.02,
        n_mfcc: int = N_MFCC,
        n_mels: int = 26,
    ):
        """
        Args:
            window_ms: Fixed attack-window length
            adaptive_window: Use twice the measured attack time instead
            onset_rms_floor: Absolute RMS level that marks the attack
            n_mfcc: Number of cepstral coefficients (must match the model)
            n_mels: Mel bands in the filterbank
        """
        if n_mfcc != N_MFCC:
            raise FeatureExtractionError(
                f"SampleFeatures holds {N_MFCC} MFCCs, got n_mfcc={n_mfcc}",
                feature_name="mfcc",
            )
        self.window_ms = window_ms
        self.adaptive_window = adaptive_window
        self.onset_rms_floor = onset_rms_floor
        self.n_mfcc = n_mfcc
        self.n_mels = n_mels

    def extract(self, signal: AudioSignal) -> SampleFeatures:
        """
        Extract all descriptors for one recording.

        Recordings shorter than one 1024-sample frame keep their loudness
        descriptors and get zeros for everything else.

        Raises:
            EmptyInputError: The signal has no samples
            FeatureExtractionError: An unexpected numerical failure
        """
        if len(signal) == 0:
            raise EmptyInputError("Cannot extract features from an empty signal",
                                  file_path=signal.source)
        try:
            return self._extract(signal)
        except SampleZoneError:
            raise
        except Exception as e:
            raise FeatureExtractionError(
                f"Feature extraction failed for {signal.source or 'signal'}: {e}"
            ) from e

    def _extract(self, signal: AudioSignal) -> SampleFeatures:
        x = signal.samples.astype(np.float64)
        sr = signal.sample_rate
        n = len(x)

        rms = float(np.sqrt(np.mean(x ** 2)))
        peak = float(np.max(np.abs(x)))
        dynamic_range = 20.0 * math.log10(peak / rms) if rms > 0 and peak > 0 else 0.0

        if n < ONSET_FRAME:
            logger.debug(f"Signal too short for spectral analysis ({n} samples)")
            zeroed = {name: 0.0 for name in SampleFeatures.SCALAR_FIELDS}
            zeroed.update(rms=rms, peak=peak, dynamic_range_db=_finite(dynamic_range))
            return SampleFeatures(**zeroed)

        onset, attack_time = detect_attack(x, sr, self.onset_rms_floor)
        window = self._attack_window(x, onset, attack_time, sr)
        shape = spectral_shape(window, sr)

        return SampleFeatures(
            rms=rms,
            peak=peak,
            dynamic_range_db=_finite(dynamic_range),
            spectral_centroid_hz=shape["centroid"],
            spectral_rolloff_hz=shape["rolloff"],
            spectral_bandwidth_hz=shape["bandwidth"],
            spectral_flatness=shape["flatness"],
            spectral_flux=spectral_flux(window),
            zero_crossing_rate=zero_crossing_rate(window),
            attack_time_sec=attack_time,
            temporal_centroid=temporal_centroid(x),
            mfcc=tuple(mfcc(window, sr, self.n_mfcc, self.n_mels)),
        )

    def _attack_window(
        self, x: np.ndarray, onset: int, attack_time: float, sr: int
    ) -> np.ndarray:
        """Slice the analysis window, at least one frame long."""
        n = len(x)
        if self.adaptive_window:
            length = min(int(2 * attack_time * sr), n - onset)
        else:
            length = int(self.window_ms / 1000.0 * sr)
        length = max(length, ONSET_FRAME)

        start = min(onset, n - ONSET_FRAME)
        return x[start:start + length]


def create_feature_extractor(config: Optional[Dict[str, Any]] = None) -> FeatureExtractor:
    """Create a FeatureExtractor from the ``features`` config section."""
    config = config or {}
    return FeatureExtractor(
        window_ms=config.get("window_ms", 256.0),
        adaptive_window=config.get("adaptive_window", False),
        onset_rms_floor=config.get("onset_rms_floor", 0.02),
        n_mfcc=config.get("n_mfcc", N_MFCC),
        n_mels=config.get("n_mels", 26),
    )
