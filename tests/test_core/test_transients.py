"""Tests for the detect -> refine -> space pipeline."""

import pytest

from samplezone.analyzers.onset import EnergyOnsetDetector, MultiscaleOnsetDetector
from samplezone.core.models import AudioSignal, TransientMarker
from samplezone.core.transients import TransientDetector, create_transient_detector

SR = 44100


class TestTransientDetector:
    def test_silence_yields_no_markers(self, silence):
        detector = TransientDetector(MultiscaleOnsetDetector())
        assert detector.detect(silence) == []

    def test_markers_are_unassigned_and_sorted(self, burst_signal):
        markers = TransientDetector(EnergyOnsetDetector()).detect(burst_signal)
        assert markers
        assert all(m.group is None for m in markers)
        positions = [m.position for m in markers]
        assert positions == sorted(positions)

    def test_detections_land_near_bursts(self, burst_signal):
        positions = TransientDetector(MultiscaleOnsetDetector()).detect_positions(burst_signal)
        assert positions
        for p in positions:
            assert min(abs(p - int(t * SR)) for t in (0.5, 1.0, 1.5, 2.0)) < 0.1 * SR

    def test_minimum_spacing_is_enforced(self, make_bursts):
        dense = AudioSignal(make_bursts(times=[0.2 + 0.1 * i for i in range(20)]), SR)
        detector = TransientDetector(MultiscaleOnsetDetector(), min_spacing_sec=0.25)
        positions = detector.detect_positions(dense)
        assert all(b - a >= int(0.25 * SR) for a, b in zip(positions, positions[1:]))

    def test_selection_limits_detection(self, burst_signal):
        detector = TransientDetector(MultiscaleOnsetDetector())
        positions = detector.detect_positions(burst_signal, (int(0.9 * SR), int(1.2 * SR)))
        assert positions
        assert all(int(0.9 * SR) - int(0.025 * SR) <= p < int(1.2 * SR) for p in positions)

    def test_update_markers_preserves_groups(self, burst_signal):
        detector = TransientDetector(MultiscaleOnsetDetector())
        existing = [TransientMarker(10, group=1), TransientMarker(12345)]
        updated = detector.update_markers(burst_signal, existing)
        assert TransientMarker(10, group=1) in updated
        assert all(m.position != 12345 for m in updated if m.group is None)

    def test_negative_offset_stays_in_bounds(self, burst_signal):
        detector = TransientDetector(MultiscaleOnsetDetector(), offset_ms=-5000.0)
        positions = detector.detect_positions(burst_signal)
        assert positions == [0]


class TestFactory:
    def test_reads_onset_and_refiner_sections(self):
        detector = create_transient_detector({
            "onset": {"algorithm": "energy", "threshold": 0.8, "offset_ms": -1.0,
                      "min_spacing_sec": 0.1},
            "refiner": {"search_back_ms": 10.0},
        })
        assert detector.detector.name == "energy"
        assert detector.threshold == 0.8
        assert detector.offset_ms == -1.0
        assert detector.min_spacing_sec == pytest.approx(0.1)
        assert detector.refiner.search_back_ms == 10.0

    def test_defaults_to_multiscale(self):
        detector = create_transient_detector({})
        assert detector.detector.name == "multiscale"
        assert detector.min_spacing_sec == pytest.approx(0.025)
