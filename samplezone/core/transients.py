"""
Transient detection for one recording.

Runs a rough onset detector, refines every candidate, applies the user
offset and enforces the detector's minimum spacing on the final
positions.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from samplezone.analyzers.onset import OnsetDetector, OnsetRefiner, create_onset_detector, create_onset_refiner
from samplezone.core.dsp import enforce_min_spacing
from samplezone.core.markers import merge_detected
from samplezone.core.models import AudioSignal, TransientMarker


class TransientDetector:
    """
    Onset detection pipeline producing TransientMarkers.

    Stateless between calls; the detector and refiner are injected.
    """

    def __init__(
        self,
        detector: OnsetDetector,
        refiner: Optional[OnsetRefiner] = None,
        threshold: float = 1.5,
        offset_ms: float = 0.0,
        min_spacing_sec: Optional[float] = None,
    ):
        """
        Args:
            detector: Rough onset strategy
            refiner: Onset refiner (default parameters if None)
            threshold: User sensitivity passed to detector and refiner
            offset_ms: Shift applied to every refined onset
            min_spacing_sec: Spacing enforced on final positions; defaults
                             to the detector's own minimum spacing
        """
        self.detector = detector
        self.refiner = refiner or OnsetRefiner()
        self.threshold = threshold
        self.offset_ms = offset_ms
        self.min_spacing_sec = (
            detector.min_spacing_sec if min_spacing_sec is None else min_spacing_sec
        )
        self.logger = logging.getLogger("transients")

    def detect_positions(
        self,
        signal: AudioSignal,
        selection: Optional[Tuple[int, int]] = None,
    ) -> List[int]:
        """
        Final onset positions, ascending.

        Args:
            signal: Prepared signal
            selection: Optional ``(start, end)`` sample range to analyze
        """
        start, end = selection if selection else (None, None)
        start_time = time.time()

        rough = self.detector.detect(signal, self.threshold, start, end)
        k_sigma = self.refiner.sensitivity(self.threshold)
        refined = [
            self.refiner.refine(
                signal.samples, r, signal.sample_rate, k_sigma, self.offset_ms
            )
            for r in rough
        ]

        min_spacing = int(self.min_spacing_sec * signal.sample_rate)
        positions = enforce_min_spacing(refined, min_spacing)

        self.logger.info(
            f"{self.detector.name}: {len(positions)} transients "
            f"({len(rough)} rough) in {time.time() - start_time:.3f}s"
        )
        return positions

    def detect(
        self,
        signal: AudioSignal,
        selection: Optional[Tuple[int, int]] = None,
    ) -> List[TransientMarker]:
        """Detect transients as unassigned markers, in position order."""
        return [TransientMarker(p) for p in self.detect_positions(signal, selection)]

    def update_markers(
        self,
        signal: AudioSignal,
        markers: Sequence[TransientMarker],
        selection: Optional[Tuple[int, int]] = None,
    ) -> List[TransientMarker]:
        """
        Re-run detection and replace the unassigned markers with the result.
        Grouped markers are preserved.
        """
        return merge_detected(markers, self.detect_positions(signal, selection))


def create_transient_detector(config: Optional[Dict[str, Any]] = None) -> TransientDetector:
    """
    Create a TransientDetector from a full config dict (``onset`` and
    ``refiner`` sections).
    """
    config = config or {}
    onset = config.get("onset", {}) or {}
    detector = create_onset_detector(onset.get("algorithm", "multiscale"), onset)
    return TransientDetector(
        detector=detector,
        refiner=create_onset_refiner(config.get("refiner")),
        threshold=onset.get("threshold", 1.5),
        offset_ms=onset.get("offset_ms", 0.0),
    )
