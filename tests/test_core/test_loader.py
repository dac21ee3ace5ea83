"""Tests for signal preparation and file decoding."""

import numpy as np
import pytest

from samplezone.core.loader import AudioLoader, create_audio_loader, prepare_signal
from samplezone.utils.errors import DecodeError, EmptyInputError, UnsupportedFormatError

SR = 44100


class TestPrepareSignal:
    def test_removes_dc_offset(self, make_tone):
        signal = prepare_signal(make_tone() + 0.25, SR)
        assert abs(float(np.mean(signal.samples))) < 1e-5

    def test_downmixes_channels_first_stereo(self, make_tone):
        left = make_tone(amplitude=0.4)
        stereo = np.vstack([left, left * 0.5])
        signal = prepare_signal(stereo, SR)
        assert signal.samples.ndim == 1
        assert len(signal) == len(left)
        np.testing.assert_allclose(signal.samples, left * 0.75, atol=1e-5)

    def test_resamples_to_analysis_rate(self, make_tone):
        half_rate = make_tone()[::2]
        signal = prepare_signal(half_rate, SR // 2)
        assert signal.sample_rate == SR
        assert abs(len(signal) - 2 * len(half_rate)) <= 1

    def test_more_than_two_channels(self):
        with pytest.raises(DecodeError):
            prepare_signal(np.zeros((3, 100)), SR)

    def test_empty_input(self):
        with pytest.raises(EmptyInputError):
            prepare_signal(np.zeros(0), SR)

    def test_non_finite_samples(self):
        with pytest.raises(DecodeError):
            prepare_signal(np.array([0.0, np.nan, 0.1]), SR)


class TestAudioLoader:
    def test_load_mono_wav(self, write_wav, make_tone):
        path = write_wav("tone.wav", make_tone())
        signal = AudioLoader().load(path)
        assert signal.sample_rate == SR
        assert len(signal) == SR
        assert signal.source == str(path)

    def test_load_resamples(self, write_wav, make_tone):
        path = write_wav("tone_22k.wav", make_tone()[::2], sample_rate=22050)
        signal = AudioLoader().load(path)
        assert signal.sample_rate == SR
        assert abs(len(signal) - SR) <= 2

    def test_load_stereo_wav(self, write_wav, make_tone):
        frames = np.stack([make_tone(), make_tone()], axis=1)
        signal = AudioLoader().load(write_wav("stereo.wav", frames))
        assert signal.samples.ndim == 1
        assert len(signal) == SR

    def test_empty_wav(self, write_wav):
        path = write_wav("empty.wav", np.zeros(0))
        with pytest.raises(EmptyInputError):
            AudioLoader().load(path)

    def test_three_channel_wav(self, write_wav):
        path = write_wav("surround.wav", np.zeros((1000, 3)))
        with pytest.raises(DecodeError):
            AudioLoader().load(path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not audio")
        with pytest.raises(UnsupportedFormatError):
            AudioLoader().load(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError):
            AudioLoader().load(tmp_path / "missing.wav")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.wav"
        path.write_bytes(b"RIFF0000WAVEjunk")
        with pytest.raises(DecodeError):
            AudioLoader().load(path)

    def test_factory_reads_audio_section(self):
        loader = create_audio_loader({"target_sample_rate": 48000, "supported_formats": [".wav"]})
        assert loader.target_sr == 48000
        assert loader.supported_suffixes == {".wav"}
