"""
Windowed FFT front end shared by feature extraction and the
spectral-flux onset detectors.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import librosa
import numpy as np

from samplezone.utils.errors import ConfigurationError

MIN_WINDOW_SIZE = 1024


def validate_window_size(win_size: int) -> int:
    """
    Raises:
        ConfigurationError: ``win_size`` is not a power of two >= 1024
    """
    if win_size < MIN_WINDOW_SIZE or win_size & (win_size - 1):
        raise ConfigurationError(
            f"FFT window size must be a power of two >= {MIN_WINDOW_SIZE}, "
            f"got {win_size}",
            config_key="win_size",
        )
    return win_size


def next_power_of_two(n: int, minimum: int = MIN_WINDOW_SIZE) -> int:
    size = max(int(n), minimum, 1)
    return 1 << (size - 1).bit_length()


@lru_cache(maxsize=16)
def hann_window(win_size: int) -> np.ndarray:
    window = librosa.filters.get_window("hann", win_size, fftbins=True)
    window = window.astype(np.float64)
    window.setflags(write=False)
    return window


def bin_frequencies(win_size: int, sample_rate: int) -> np.ndarray:
    """Center frequency in Hz of each rfft bin."""
    return librosa.fft_frequencies(sr=sample_rate, n_fft=win_size)


def magnitude_spectrum(
    frame: np.ndarray,
    win_size: Optional[int] = None,
    log_compress: bool = False,
) -> np.ndarray:
    """
    Hann-windowed magnitude spectrum of one frame.

    The frame is Hann-windowed over its own length, then zero-padded (or
    truncated) to ``win_size``, which defaults to the next power of two
    that holds it.

    Returns:
        np.ndarray: ``win_size // 2 + 1`` magnitudes, ``log1p`` compressed
        when ``log_compress`` is set
    """
    frame = np.asarray(frame, dtype=np.float64)
    if win_size is None:
        win_size = next_power_of_two(len(frame))
    validate_window_size(win_size)

    n = min(len(frame), win_size)
    padded = np.zeros(win_size)
    if n:
        padded[:n] = frame[:n] * hann_window(n)

    magnitudes = np.abs(np.fft.rfft(padded))
    return np.log1p(magnitudes) if log_compress else magnitudes


def spectrogram(
    samples: np.ndarray,
    win_size: int,
    hop_size: Optional[int] = None,
    start: int = 0,
    end: Optional[int] = None,
    log_compress: bool = False,
) -> np.ndarray:
    """
    Magnitude spectra of hopped frames covering ``samples[start:end]``.

    Only frames that fit completely inside the range are produced.

    Returns:
        np.ndarray: Shape ``(n_frames, win_size // 2 + 1)``; zero frames
        when the range is shorter than one window
    """
    validate_window_size(win_size)
    hop_size = hop_size or win_size // 4
    region = np.ascontiguousarray(samples[start:end], dtype=np.float64)
    n_bins = win_size // 2 + 1

    if len(region) < win_size:
        return np.zeros((0, n_bins))

    frames = librosa.util.frame(region, frame_length=win_size, hop_length=hop_size, axis=0)
    magnitudes = np.abs(np.fft.rfft(frames * hann_window(win_size), axis=1))
    return np.log1p(magnitudes) if log_compress else magnitudes


@dataclass(frozen=True)
class SpectralFrontEnd:
    """Fixed window/hop configuration for framing a signal."""

    win_size: int = 2048
    hop_size: int = 256
    log_compress: bool = False

    def __post_init__(self):
        validate_window_size(self.win_size)
        if not 0 < self.hop_size <= self.win_size:
            raise ConfigurationError(
                f"hop_size must be in (0, {self.win_size}], got {self.hop_size}",
                config_key="hop_size",
            )

    def frames(self, samples: np.ndarray, start: int = 0, end: Optional[int] = None) -> np.ndarray:
        return spectrogram(
            samples, self.win_size, self.hop_size, start, end, self.log_compress
        )

    def frequencies(self, sample_rate: int) -> np.ndarray:
        return bin_frequencies(self.win_size, sample_rate)

    def frame_position(self, frame_index: int, start: int = 0) -> int:
        """Sample index of the first sample of a frame."""
        return start + frame_index * self.hop_size
