"""
Signal preparation for SampleZone.

Decodes audio files (or accepts raw arrays) and produces mono float32
signals at the analysis sample rate with the DC offset removed.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Tuple, Union

import librosa
import numpy as np
import soundfile as sf

from samplezone.core.models import ANALYSIS_SAMPLE_RATE, AudioSignal
from samplezone.utils.errors import DecodeError, EmptyInputError, UnsupportedFormatError

SUPPORTED_FORMATS: Dict[str, str] = {
    '.wav': 'soundfile',
    '.aif': 'soundfile',
    '.aiff': 'soundfile',
    '.flac': 'soundfile',
    '.ogg': 'soundfile',
    '.mp3': 'audioread',
}

MAX_CHANNELS: int = 2

logger = logging.getLogger(__name__)


def prepare_signal(
    samples: np.ndarray,
    sample_rate: int,
    target_sr: int = ANALYSIS_SAMPLE_RATE,
    source: Optional[str] = None,
) -> AudioSignal:
    """
    Turn a raw mono or stereo buffer into an analysis-ready signal.

    Args:
        samples: 1-D mono samples, or 2-D channels-first samples
        sample_rate: Rate of ``samples`` in Hz
        target_sr: Analysis rate; the buffer is resampled if it differs
        source: Optional identifier carried on the result

    Returns:
        AudioSignal: Mono, resampled, DC-free signal

    Raises:
        EmptyInputError: The buffer has no samples
        DecodeError: Unsupported channel layout or non-finite samples
    """
    data = np.asarray(samples, dtype=np.float32)

    if data.ndim == 2:
        if data.shape[0] > MAX_CHANNELS:
            raise DecodeError(
                f"Unsupported channel layout: {data.shape[0]} channels",
                file_path=source
            )
        data = np.mean(data, axis=0, dtype=np.float32)
    elif data.ndim != 1:
        raise DecodeError(
            f"Unsupported sample buffer shape {data.shape}", file_path=source
        )

    if data.size == 0:
        raise EmptyInputError("Audio source has zero length", file_path=source)

    if not np.all(np.isfinite(data)):
        raise DecodeError("Audio contains non-finite samples", file_path=source)

    if sample_rate != target_sr:
        data = librosa.resample(data, orig_sr=sample_rate, target_sr=target_sr)

    # DC removal
    data = (data - np.mean(data, dtype=np.float64)).astype(np.float32)

    return AudioSignal(data, target_sr, source)


class AudioLoader:
    """
    Loads audio files and creates AudioSignal instances.

    Stateless, so one instance can be shared across worker threads.
    """

    def __init__(
        self,
        target_sr: int = ANALYSIS_SAMPLE_RATE,
        supported_formats: Optional[Iterable[str]] = None,
    ):
        self.target_sr = target_sr
        self.supported_suffixes: Set[str] = {
            s.lower() for s in (supported_formats or SUPPORTED_FORMATS.keys())
        }

    def load(self, file_path: Union[str, Path]) -> AudioSignal:
        """
        Decode a file into an analysis-ready signal.

        Raises:
            UnsupportedFormatError: File suffix not supported
            DecodeError: File missing, unreadable or more than two channels
            EmptyInputError: File decodes to zero samples
        """
        file_path = Path(file_path)

        self._validate_file(file_path)
        metadata = self._load_metadata(file_path)

        if metadata.get('frames') == 0:
            raise EmptyInputError(
                f"Audio file is empty: {file_path}", file_path=str(file_path)
            )
        channels = metadata.get('channels')
        if channels is not None and channels > MAX_CHANNELS:
            raise DecodeError(
                f"Unsupported channel layout: {channels} channels",
                file_path=str(file_path)
            )

        audio_data, sample_rate = self._load_audio_data(file_path)

        # librosa already resampled; prepare_signal does the downmix and DC removal
        return prepare_signal(
            audio_data, sample_rate, target_sr=self.target_sr, source=str(file_path)
        )

    def _validate_file(self, file_path: Path) -> None:
        if not file_path.is_file():
            raise DecodeError(
                f"Audio file not found: {file_path}", file_path=str(file_path)
            )

        suffix = file_path.suffix.lower()
        if suffix not in self.supported_suffixes:
            raise UnsupportedFormatError(
                f"Format {suffix} not supported. "
                f"Supported formats: {', '.join(sorted(self.supported_suffixes))}",
                format=suffix
            )

    def _load_metadata(self, file_path: Path) -> Dict[str, Any]:
        """Probe channel count and length without decoding."""
        try:
            with sf.SoundFile(str(file_path)) as f:
                metadata = {
                    'sample_rate': f.samplerate,
                    'channels': f.channels,
                    'frames': f.frames,
                    'subtype': f.subtype,
                }
        except (sf.LibsndfileError, RuntimeError) as e:
            # Compressed formats libsndfile can't open are probed by librosa later
            logger.warning(f"Could not read metadata with soundfile: {e}")
            return {}

        logger.debug(
            f"Loading audio: {metadata['sample_rate']} Hz, "
            f"{metadata['channels']} ch, {metadata['subtype']}"
        )
        return metadata

    def _load_audio_data(self, file_path: Path) -> Tuple[np.ndarray, int]:
        try:
            audio_data, sample_rate = librosa.load(
                str(file_path),
                sr=self.target_sr,
                mono=False,
                dtype=np.float32
            )
        except Exception as e:
            raise DecodeError(
                f"Failed to decode audio data from {file_path}: {e}",
                file_path=str(file_path)
            ) from e

        return audio_data, sample_rate


def create_audio_loader(config: Optional[Dict[str, Any]] = None) -> AudioLoader:
    """
    Create an AudioLoader from the ``audio`` config section.
    """
    if config is None:
        config = {}

    return AudioLoader(
        target_sr=config.get('target_sample_rate', ANALYSIS_SAMPLE_RATE),
        supported_formats=config.get('supported_formats'),
    )
