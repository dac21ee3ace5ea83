"""Tests for parallel batch feature extraction."""

import numpy as np
import pytest

from samplezone.core.batch_processor import BatchResult, FeatureBatchProcessor
from samplezone.core.models import AudioSignal, SampleFeatures

SR = 44100


class TestBatchResult:
    def test_counts(self):
        result = BatchResult(
            successful={"a": SampleFeatures.zeros()},
            failed={"b": "broken"},
            order=["a", "b"],
        )
        assert result.total_files == 2
        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.success_rate == 50.0
        assert result.successful_in_order() == ["a"]

    def test_empty_success_rate(self):
        assert BatchResult().success_rate == 0.0


class TestFeatureBatchProcessor:
    @pytest.mark.parametrize("max_workers", [1, 4])
    def test_bad_file_does_not_abort_batch(self, tmp_path, write_wav, make_tone, max_workers):
        good = [write_wav(f"tone_{i}.wav", make_tone(freq=200.0 * (i + 1))) for i in range(3)]
        bad = tmp_path / "corrupt.wav"
        bad.write_bytes(b"not a wav file")
        missing = tmp_path / "missing.wav"

        processor = FeatureBatchProcessor(max_workers=max_workers)
        result = processor.process(good + [bad, missing])

        assert result.successful_in_order() == [str(p) for p in good]
        assert set(result.failed) == {str(bad), str(missing)}
        assert result.failed[str(missing)] == "Path not found"
        assert result.order == [str(p) for p in good + [bad, missing]]

    def test_directory_scan_skips_non_audio(self, tmp_path, write_wav, make_tone):
        write_wav("b.wav", make_tone())
        write_wav("a.wav", make_tone())
        (tmp_path / "readme.txt").write_text("notes")

        result = FeatureBatchProcessor().process(tmp_path)
        assert result.order == [str(tmp_path / "a.wav"), str(tmp_path / "b.wav")]
        assert result.failure_count == 0

    def test_explicit_non_audio_file_is_reported(self, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("notes")
        result = FeatureBatchProcessor().process([notes])
        assert result.failed[str(notes)].startswith("Unsupported format")

    def test_progress_callback(self, write_wav, make_tone):
        calls = []
        paths = [write_wav(f"t{i}.wav", make_tone()) for i in range(2)]
        processor = FeatureBatchProcessor(
            max_workers=1, progress_callback=lambda done, total, ident: calls.append((done, total))
        )
        processor.process(paths)
        assert calls == [(1, 2), (2, 2)]

    def test_process_signals(self, make_tone):
        signals = [AudioSignal(make_tone(), SR), AudioSignal(np.zeros(0), SR)]
        result = FeatureBatchProcessor(max_workers=2).process_signals(signals, ["tone", "empty"])
        assert list(result.successful) == ["tone"]
        assert "empty" in result.failed

    def test_identifiers_must_match(self, make_tone):
        with pytest.raises(ValueError):
            FeatureBatchProcessor().process_signals([AudioSignal(make_tone(), SR)], ["a", "b"])
