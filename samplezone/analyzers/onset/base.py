"""
Onset detector interface for SampleZone.

Every detection strategy satisfies the OnsetDetector protocol; the
BaseOnsetDetector template handles selection ranges, timing and error
wrapping so strategies only implement the novelty computation.
"""

import logging
import time
from abc import abstractmethod
from typing import List, Optional, Protocol

import numpy as np

from samplezone.core.models import AudioSignal
from samplezone.utils.errors import AnalysisError, SampleZoneError


class OnsetDetector(Protocol):
    """
    Structural interface for onset detectors.

    detect() returns rough onset positions in absolute sample
    coordinates of the full signal, ascending, before refinement.
    """

    @property
    def name(self) -> str:
        ...

    @property
    def min_spacing_sec(self) -> float:
        ...

    def detect(
        self,
        signal: AudioSignal,
        threshold: float,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[int]:
        ...


class BaseOnsetDetector:
    """
    Template-method base class for detection strategies.

    Subclasses implement _detect_impl() on the selected region and
    sensitivity() to map the user threshold to a sigma multiplier.
    """

    def __init__(self, name: str, version: str, min_spacing_sec: float):
        self._name = name
        self._version = version
        self._min_spacing_sec = min_spacing_sec
        self.logger = logging.getLogger(f"onset.{name}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def min_spacing_sec(self) -> float:
        """Minimum distance between accepted onsets, in seconds."""
        return self._min_spacing_sec

    def min_spacing_samples(self, sample_rate: int) -> int:
        return int(self._min_spacing_sec * sample_rate)

    def detect(
        self,
        signal: AudioSignal,
        threshold: float,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[int]:
        """
        Detect rough onsets inside ``[start, end)`` of ``signal``.

        Args:
            signal: Prepared signal
            threshold: User sensitivity; lower values detect more onsets
            start: First sample of the selection (default 0)
            end: End of the selection, exclusive (default len(signal))

        Returns:
            List[int]: Ascending absolute sample positions; empty for
            silence or a selection too short to analyze

        Raises:
            AnalysisError: If the strategy fails unexpectedly
        """
        n = len(signal)
        start = 0 if start is None else max(0, int(start))
        end = n if end is None else min(n, int(end))
        if end <= start:
            # empty or inverted selection analyzes the whole signal
            start, end = 0, n

        start_time = time.time()
        try:
            region = signal.samples[start:end].astype(np.float64)
            relative = self._detect_impl(region, signal.sample_rate, threshold)
        except SampleZoneError:
            raise
        except Exception as e:
            self.logger.error(f"Onset detection failed: {e}")
            raise AnalysisError(
                f"{self.name} onset detection failed: {e}",
                analyzer_name=self.name,
                original_error=e
            ) from e

        positions = sorted(start + int(p) for p in relative)
        elapsed = time.time() - start_time
        self.logger.info(
            f"Detected {len(positions)} rough onsets in {end - start} samples "
            f"in {elapsed:.3f}s"
        )
        return positions

    @abstractmethod
    def sensitivity(self, threshold: float) -> float:
        """Map the user threshold to a standard-deviation multiplier."""
        raise NotImplementedError

    @abstractmethod
    def _detect_impl(
        self, region: np.ndarray, sample_rate: int, threshold: float
    ) -> List[int]:
        """
        Return onset positions relative to the start of ``region``.
        """
        raise NotImplementedError
