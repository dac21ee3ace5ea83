"""
Core data models for SampleZone.

Immutable domain models for prepared signals, per-recording descriptors,
transient markers and clustering results.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from samplezone.utils.errors import ConfigurationError, DegenerateClusteringError

ANALYSIS_SAMPLE_RATE: int = 44100
N_MFCC: int = 13


class OnsetAlgorithm(str, Enum):
    """Available onset detection strategies."""

    ENERGY = "energy"
    SUPERFLUX = "superflux"
    IRCAM = "ircam"
    MULTISCALE = "multiscale"


class ClusteringMethod(str, Enum):
    KMEANS = "kmeans"
    HIERARCHICAL = "hierarchical"
    DBSCAN = "dbscan"


class DistanceMetric(str, Enum):
    EUCLIDEAN = "euclidean"
    COSINE = "cosine"


@dataclass(frozen=True)
class AudioSignal:
    """
    Immutable mono signal at a fixed sample rate.

    The sample buffer is stored as a read-only float32 array; stages that
    transform the signal allocate new arrays instead of writing in place.
    """

    samples: np.ndarray
    sample_rate: int = ANALYSIS_SAMPLE_RATE
    source: Optional[str] = None

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float32, copy=True)
        if samples.ndim != 1:
            raise ValueError(f"AudioSignal must be mono, got shape {samples.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return len(self) / self.sample_rate

    def slice(self, start: int, end: Optional[int] = None) -> "AudioSignal":
        """Return the region [start, end) as a new signal."""
        end = len(self) if end is None else min(end, len(self))
        start = max(0, start)
        return AudioSignal(self.samples[start:end], self.sample_rate, self.source)


@dataclass(frozen=True)
class SampleFeatures:
    """
    Descriptors for one analyzed recording.

    All scalar fields are finite. The clustering vector is derived on
    demand from these fields by feature_vector(), so changing the loudness
    weight never requires re-extraction.
    """

    rms: float
    peak: float
    dynamic_range_db: float
    spectral_centroid_hz: float
    spectral_rolloff_hz: float
    spectral_bandwidth_hz: float
    spectral_flatness: float
    spectral_flux: float
    zero_crossing_rate: float
    attack_time_sec: float
    temporal_centroid: float
    mfcc: Tuple[float, ...] = field(default_factory=lambda: (0.0,) * N_MFCC)

    SCALAR_FIELDS = (
        "rms",
        "peak",
        "dynamic_range_db",
        "spectral_centroid_hz",
        "spectral_rolloff_hz",
        "spectral_bandwidth_hz",
        "spectral_flatness",
        "spectral_flux",
        "zero_crossing_rate",
        "attack_time_sec",
        "temporal_centroid",
    )
    LOUDNESS_FIELDS = ("rms", "peak", "dynamic_range_db")
    TIMBRE_FIELDS = SCALAR_FIELDS[3:] + tuple(f"mfcc_{i}" for i in range(N_MFCC))

    def __post_init__(self):
        mfcc = tuple(float(c) for c in self.mfcc)
        if len(mfcc) != N_MFCC:
            raise ValueError(f"Expected {N_MFCC} MFCCs, got {len(mfcc)}")
        object.__setattr__(self, "mfcc", mfcc)

        for name in self.SCALAR_FIELDS:
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise ValueError(f"Feature {name} must be finite, got {value}")
            object.__setattr__(self, name, value)
        if not all(math.isfinite(c) for c in mfcc):
            raise ValueError("MFCC coefficients must be finite")

    @classmethod
    def zeros(cls) -> "SampleFeatures":
        return cls(**{name: 0.0 for name in cls.SCALAR_FIELDS})

    @classmethod
    def column_names(cls) -> Tuple[str, ...]:
        """Names of the columns produced by as_array()."""
        return cls.SCALAR_FIELDS + tuple(f"mfcc_{i}" for i in range(N_MFCC))

    def as_array(self) -> np.ndarray:
        """Canonical fields as one row: scalars followed by the MFCCs."""
        return np.array(
            [getattr(self, name) for name in self.SCALAR_FIELDS] + list(self.mfcc),
            dtype=np.float64,
        )

    @classmethod
    def from_array(cls, row: Sequence[float]) -> "SampleFeatures":
        row = list(row)
        n = len(cls.SCALAR_FIELDS)
        if len(row) != n + N_MFCC:
            raise ValueError(f"Expected {n + N_MFCC} values, got {len(row)}")
        return cls(**dict(zip(cls.SCALAR_FIELDS, row[:n])), mfcc=tuple(row[n:]))

    def timbre_vector(self) -> np.ndarray:
        """Non-loudness columns of as_array()."""
        return self.as_array()[len(self.LOUDNESS_FIELDS):]

    def feature_vector(self, loudness_weight: float = 0.3) -> np.ndarray:
        """
        Weighted concatenation used for single-stage clustering.

        Loudness terms carry ``loudness_weight``; spectral, temporal and
        MFCC terms share the remainder.
        """
        timbre_weight = 1.0 - loudness_weight
        loudness = [self.rms * 5.0, self.peak * 3.0, self.dynamic_range_db * 2.0]
        spectral = [
            self.spectral_centroid_hz,
            self.spectral_rolloff_hz,
            self.spectral_bandwidth_hz,
            self.spectral_flatness,
            self.spectral_flux,
            self.zero_crossing_rate,
        ]
        temporal = [self.attack_time_sec * 10.0, self.temporal_centroid]
        return np.concatenate([
            np.asarray(loudness) * loudness_weight,
            np.asarray(spectral + temporal + list(self.mfcc)) * timbre_weight,
        ])

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mfcc"] = list(self.mfcc)
        return data


@dataclass(frozen=True)
class TransientMarker:
    """
    Region start marker inside a recording.

    ``group`` is None for a detected, unconfirmed transient. Storage order
    is not significant; consumers sort by position before deriving regions.

    Attributes:
        position: Sample position of the region start
        group: Assigned group (velocity layer), or None
        custom_end: Exclusive sample position ending the region early;
            None means the region runs to the next marker
    """

    position: int
    group: Optional[int] = None
    custom_end: Optional[int] = None

    def __post_init__(self):
        if self.position < 0:
            raise ValueError(f"Marker position must be >= 0, got {self.position}")
        if self.custom_end is not None and self.custom_end <= self.position:
            raise ValueError(
                f"Custom end {self.custom_end} must lie after position {self.position}"
            )

    @property
    def is_transient(self) -> bool:
        return self.group is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ClusteringOptions:
    """Clustering configuration shared by the engine and the pipeline."""

    method: ClusteringMethod = ClusteringMethod.HIERARCHICAL
    min_clusters: int = 2
    max_clusters: int = 8
    distance_metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    loudness_weight: float = 0.3
    dbscan_eps: float = 0.5
    dbscan_min_pts: int = 2
    max_iterations: int = 200
    seed: Optional[int] = None
    loudness_thresholds: Optional[Tuple[float, ...]] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, "method", ClusteringMethod(self.method))
            object.__setattr__(
                self, "distance_metric", DistanceMetric(self.distance_metric)
            )
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="clustering") from e
        if self.min_clusters < 1:
            raise ConfigurationError(
                f"min_clusters must be >= 1, got {self.min_clusters}",
                config_key="clustering.min_clusters",
            )
        if self.max_clusters < self.min_clusters:
            raise ConfigurationError(
                f"max_clusters ({self.max_clusters}) must be >= "
                f"min_clusters ({self.min_clusters})",
                config_key="clustering.max_clusters",
            )
        if not 0.0 <= self.loudness_weight <= 1.0:
            raise ConfigurationError(
                f"loudness_weight must be in [0, 1], got {self.loudness_weight}",
                config_key="clustering.loudness_weight",
            )
        if self.dbscan_eps <= 0 or self.dbscan_min_pts < 1:
            raise ConfigurationError(
                "dbscan_eps must be > 0 and dbscan_min_pts >= 1",
                config_key="clustering.dbscan_eps",
            )
        if self.loudness_thresholds is not None:
            thresholds = tuple(float(t) for t in self.loudness_thresholds)
            if list(thresholds) != sorted(thresholds):
                raise ConfigurationError(
                    "loudness_thresholds must be ascending",
                    config_key="grouping.loudness_thresholds",
                )
            object.__setattr__(self, "loudness_thresholds", thresholds)

    def validate(self, n_samples: int) -> None:
        """
        Check the options against a sample count.

        Raises:
            DegenerateClusteringError: If max_clusters exceeds n_samples
        """
        if n_samples < 1 or self.max_clusters > n_samples:
            raise DegenerateClusteringError(
                f"Cannot form up to {self.max_clusters} clusters from "
                f"{n_samples} samples",
                n_samples=n_samples,
                requested=self.max_clusters,
            )

    def bounded(self, n_samples: int) -> "ClusteringOptions":
        """Copy with the cluster range clipped to ``n_samples``."""
        upper = max(1, min(self.max_clusters, n_samples))
        lower = min(self.min_clusters, upper)
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(min_clusters=lower, max_clusters=upper)
        return ClusteringOptions(**values)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None,
                    grouping: Optional[Dict[str, Any]] = None) -> "ClusteringOptions":
        config = config or {}
        grouping = grouping or {}
        thresholds = grouping.get("loudness_thresholds")
        return cls(
            method=config.get("method", ClusteringMethod.HIERARCHICAL),
            min_clusters=config.get("min_clusters", 2),
            max_clusters=config.get("max_clusters", 8),
            distance_metric=config.get("distance_metric", DistanceMetric.EUCLIDEAN),
            loudness_weight=config.get("loudness_weight", 0.3),
            dbscan_eps=config.get("dbscan_eps", 0.5),
            dbscan_min_pts=config.get("dbscan_min_pts", 2),
            max_iterations=config.get("max_iterations", 200),
            seed=config.get("seed"),
            loudness_thresholds=tuple(thresholds) if thresholds else None,
        )


@dataclass(frozen=True)
class ClusterAssignment:
    """
    Label per input row plus one centroid per label.

    Labels are 0..n_clusters-1 once noise has been reassigned; NOISE only
    appears in raw DBSCAN output.
    """

    NOISE = -1

    labels: np.ndarray
    centroids: np.ndarray

    @property
    def n_clusters(self) -> int:
        return int(self.centroids.shape[0])

    def members(self) -> List[List[int]]:
        """Row indices per cluster label, in ascending index order."""
        return [
            [int(i) for i in np.flatnonzero(self.labels == label)]
            for label in range(self.n_clusters)
        ]


@dataclass(frozen=True)
class GroupingResult:
    """
    Output of a multi-recording grouping run.

    ``clusters`` holds indices into ``features``/``identifiers``, quietest
    cluster first, members in round-robin order. ``skipped`` maps inputs
    that could not be analyzed to the reason.
    """

    clusters: List[List[int]]
    features: List[SampleFeatures]
    identifiers: List[str]
    skipped: Dict[str, str] = field(default_factory=dict)

    def labels(self) -> List[int]:
        """Cluster label per analyzed input."""
        labels = [-1] * len(self.features)
        for label, members in enumerate(self.clusters):
            for index in members:
                labels[index] = label
        return labels

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusters": [
                [self.identifiers[i] for i in members] for members in self.clusters
            ],
            "features": {
                ident: feats.to_dict()
                for ident, feats in zip(self.identifiers, self.features)
            },
            "skipped": dict(self.skipped),
        }


@dataclass(frozen=True)
class RegionLengthStats:
    """Region-length distribution used to spot abnormally long regions."""

    median: int
    q1: int
    q3: int
    iqr: int
    upper_bound: int
    outliers: List[int]
    suggested_trim_length: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
