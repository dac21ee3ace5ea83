"""
Onset detection strategies and refinement.

Use create_onset_detector() to build a detector by algorithm name.
"""

from typing import Any, Dict, Optional, Union

from samplezone.analyzers.onset.base import BaseOnsetDetector, OnsetDetector
from samplezone.analyzers.onset.energy import EnergyOnsetDetector
from samplezone.analyzers.onset.ircam import IrcamOnsetDetector
from samplezone.analyzers.onset.multiscale import MultiscaleOnsetDetector
from samplezone.analyzers.onset.refiner import OnsetRefiner, create_onset_refiner
from samplezone.analyzers.onset.superflux import SuperFluxOnsetDetector
from samplezone.core.models import OnsetAlgorithm
from samplezone.utils.errors import ConfigurationError

__all__ = [
    "OnsetDetector",
    "BaseOnsetDetector",
    "EnergyOnsetDetector",
    "SuperFluxOnsetDetector",
    "IrcamOnsetDetector",
    "MultiscaleOnsetDetector",
    "OnsetRefiner",
    "create_onset_detector",
    "create_onset_refiner",
]


def create_onset_detector(
    algorithm: Union[str, OnsetAlgorithm] = OnsetAlgorithm.MULTISCALE,
    config: Optional[Dict[str, Any]] = None,
) -> BaseOnsetDetector:
    """
    Create an onset detector.

    Args:
        algorithm: "energy", "superflux", "ircam" or "multiscale"
        config: Optional ``onset`` config section; ``min_spacing_sec``
                applies to the frame-based detectors and
                ``multiscale_refractory_ms`` to the multiscale one

    Raises:
        ConfigurationError: Unknown algorithm name
    """
    config = config or {}
    try:
        algorithm = OnsetAlgorithm(algorithm)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown onset algorithm: {algorithm}", config_key="onset.algorithm"
        ) from e

    spacing = config.get("min_spacing_sec", 0.25)
    if algorithm is OnsetAlgorithm.ENERGY:
        return EnergyOnsetDetector(min_spacing_sec=spacing)
    if algorithm is OnsetAlgorithm.SUPERFLUX:
        return SuperFluxOnsetDetector(min_spacing_sec=spacing)
    if algorithm is OnsetAlgorithm.IRCAM:
        return IrcamOnsetDetector(min_spacing_sec=spacing)
    return MultiscaleOnsetDetector(
        refractory_ms=config.get("multiscale_refractory_ms", 25.0)
    )
