"""Fixtures for onset detector tests."""

import pytest

from samplezone.analyzers.onset import create_onset_detector
from samplezone.core.models import OnsetAlgorithm

ALL_ALGORITHMS = [a.value for a in OnsetAlgorithm]


@pytest.fixture(params=ALL_ALGORITHMS)
def any_detector(request):
    """Each onset detection strategy in turn."""
    return create_onset_detector(request.param)
