"""
Two-stage grouping of recordings into velocity layers and round robins.

Stage 1 splits recordings into loudness classes on RMS alone. Stage 2
sub-clusters crowded loudness classes on timbre. Final clusters run
quietest to loudest, and members within a cluster are ordered so that
consecutive round-robin slots sound as different as possible.
"""

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from samplezone.clustering.engine import ClusteringEngine
from samplezone.clustering.jenks import count_significant_gaps, jenks_natural_breaks
from samplezone.clustering.ordering import farthest_point_order, median_order
from samplezone.core.batch_processor import BatchResult, FeatureBatchProcessor
from samplezone.core.features import FeatureExtractor, create_feature_extractor
from samplezone.core.loader import AudioLoader, create_audio_loader
from samplezone.core.models import (
    AudioSignal,
    ClusteringOptions,
    GroupingResult,
    SampleFeatures,
)
from samplezone.utils.errors import DegenerateClusteringError

STD_FLOOR = 1e-6
SMALL_SET_SIZE = 8
MAX_LOUDNESS_CLASSES = 8
SUB_CLUSTER_THRESHOLD = 3
MAX_SUB_CLUSTERS = 3

# Relative weight of each timbre column in stage 2; MFCCs share MFCC_WEIGHT.
TIMBRE_WEIGHTS = {
    "spectral_centroid_hz": 0.3,
    "spectral_rolloff_hz": 0.2,
    "spectral_bandwidth_hz": 0.2,
    "spectral_flatness": 0.15,
    "zero_crossing_rate": 0.15,
    "spectral_flux": 0.1,
    "attack_time_sec": 0.1,
    "temporal_centroid": 0.1,
}
MFCC_WEIGHT = 0.2

logger = logging.getLogger("grouping")


class ZScoreNormalizer:
    """Per-column z-score scaling with a floored standard deviation."""

    def __init__(self, std_floor: float = STD_FLOOR):
        self.std_floor = std_floor
        self.mean_: Optional[np.ndarray] = None
        self.std_: Optional[np.ndarray] = None

    def fit(self, X: np.ndarray) -> "ZScoreNormalizer":
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2 or X.shape[0] == 0:
            raise ValueError(f"Expected a non-empty 2-D matrix, got shape {X.shape}")
        self.mean_ = X.mean(axis=0)
        self.std_ = np.maximum(X.std(axis=0), self.std_floor)
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        if self.mean_ is None:
            raise RuntimeError("ZScoreNormalizer must be fitted before transform")
        return (np.asarray(X, dtype=np.float64) - self.mean_) / self.std_

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        return self.fit(X).transform(X)


def timbre_weight_vector(weights: Optional[Mapping[str, float]] = None) -> np.ndarray:
    """Weight per TIMBRE_FIELDS column."""
    weights = TIMBRE_WEIGHTS if weights is None else weights
    n_mfcc = sum(1 for name in SampleFeatures.TIMBRE_FIELDS if name.startswith("mfcc_"))
    return np.array([
        MFCC_WEIGHT / n_mfcc if name.startswith("mfcc_") else weights.get(name, 0.0)
        for name in SampleFeatures.TIMBRE_FIELDS
    ])


def optimal_loudness_classes(rms: Sequence[float], options: ClusteringOptions) -> int:
    """
    Number of loudness classes for a set of RMS values.

    Small sets (8 or fewer) stay in one class. Larger sets allow up to
    n // 3 classes (between 2 and 8, never above ``max_clusters``); within
    that range the count follows the number of pronounced gaps in the
    sorted RMS values.
    """
    rms = np.asarray(rms, dtype=np.float64)
    n = rms.size
    if n <= SMALL_SET_SIZE:
        return 1
    cap = min(MAX_LOUDNESS_CLASSES, max(2, n // 3), options.max_clusters, n)
    lower = min(options.min_clusters, cap)
    count = 1 + count_significant_gaps(rms)
    return int(np.clip(count, lower, cap))


def loudness_labels(rms: Sequence[float], options: ClusteringOptions) -> np.ndarray:
    """
    Loudness class per recording, 0 for the quietest.

    With calibrated ``loudness_thresholds`` a recording moves up one class
    per threshold its RMS exceeds; otherwise classes come from natural
    breaks in the RMS values.
    """
    rms = np.asarray(rms, dtype=np.float64)
    if options.loudness_thresholds:
        thresholds = np.asarray(options.loudness_thresholds, dtype=np.float64)
        return np.searchsorted(thresholds, rms, side="left").astype(np.int64)
    return jenks_natural_breaks(rms, optimal_loudness_classes(rms, options))


class GroupingPipeline:
    """
    Groups recordings into loudness-ordered clusters of round robins.

    Example:
        >>> pipeline = GroupingPipeline(options=ClusteringOptions(seed=7))
        >>> result = pipeline.group_files(["kick_01.wav", "kick_02.wav"])
        >>> result.to_dict()["clusters"]
    """

    def __init__(
        self,
        extractor: Optional[FeatureExtractor] = None,
        options: Optional[ClusteringOptions] = None,
        loader: Optional[AudioLoader] = None,
        max_workers: int = 4,
        rng: Optional[np.random.Generator] = None,
        sub_cluster_threshold: int = SUB_CLUSTER_THRESHOLD,
        max_sub_clusters: int = MAX_SUB_CLUSTERS,
        timbre_weights: Optional[Mapping[str, float]] = None,
    ):
        self.extractor = extractor or FeatureExtractor()
        self.options = options or ClusteringOptions()
        self.loader = loader or AudioLoader()
        self.max_workers = max_workers
        self.rng = rng if rng is not None else np.random.default_rng(self.options.seed)
        self.sub_cluster_threshold = sub_cluster_threshold
        self.max_sub_clusters = max_sub_clusters
        self.timbre_weights = timbre_weight_vector(timbre_weights)
        self.processor = FeatureBatchProcessor(
            extractor=self.extractor, loader=self.loader, max_workers=max_workers
        )

    def group_files(
        self,
        paths: Union[str, Path, Sequence[Union[str, Path]]],
        recursive: bool = False,
    ) -> GroupingResult:
        """Decode, analyze and group audio files; failed files are skipped."""
        return self._group_batch(self.processor.process(paths, recursive))

    def group_signals(
        self,
        signals: Sequence[AudioSignal],
        identifiers: Optional[Sequence[str]] = None,
    ) -> GroupingResult:
        """Analyze and group already prepared signals."""
        return self._group_batch(self.processor.process_signals(signals, identifiers))

    def _group_batch(self, batch: BatchResult) -> GroupingResult:
        identifiers = batch.successful_in_order()
        features = [batch.successful[ident] for ident in identifiers]
        if batch.failed:
            logger.warning(f"Skipped {batch.failure_count} of {batch.total_files} inputs")
        return GroupingResult(
            clusters=self.group_features(features),
            features=features,
            identifiers=identifiers,
            skipped=dict(batch.failed),
        )

    def group_features(self, features: Sequence[SampleFeatures]) -> List[List[int]]:
        """
        Two-stage grouping of feature sets.

        Returns:
            List[List[int]]: Indices into ``features`` per cluster, quietest
            cluster first, members in round-robin order
        """
        n = len(features)
        if n == 0:
            return []
        start_time = time.time()

        raw = np.vstack([f.as_array() for f in features])
        normalized = ZScoreNormalizer().fit_transform(raw)
        rms = raw[:, 0]
        timbre = normalized[:, len(SampleFeatures.LOUDNESS_FIELDS):] * self.timbre_weights

        labels = loudness_labels(rms, self.options)
        classes = [list(np.flatnonzero(labels == label)) for label in np.unique(labels)]
        logger.debug(f"Loudness stage: {len(classes)} classes from {n} recordings")

        clusters: List[List[int]] = []
        for members in classes:
            if len(members) <= self.sub_cluster_threshold:
                clusters.append([int(i) for i in members])
            else:
                clusters.extend(self._sub_cluster(members, timbre))

        ordered = [
            self._round_robin(members, timbre) for members in median_order(clusters, rms)
        ]
        logger.info(
            f"Grouped {n} recordings into {len(ordered)} clusters "
            f"in {time.time() - start_time:.3f}s"
        )
        return ordered

    def group_single_stage(self, features: Sequence[SampleFeatures]) -> List[List[int]]:
        """
        Cluster all descriptors at once with loudness down-weighted.

        Features are normalized per column, then combined with
        SampleFeatures.feature_vector(loudness_weight).
        """
        n = len(features)
        if n == 0:
            return []

        raw = np.vstack([f.as_array() for f in features])
        normalized = ZScoreNormalizer().fit_transform(raw)
        vectors = np.vstack([
            SampleFeatures.from_array(row).feature_vector(self.options.loudness_weight)
            for row in normalized
        ])

        if n < 3:
            clusters = [list(range(n))]
        else:
            engine = ClusteringEngine(
                self.options.bounded(n), rng=self.rng, max_workers=self.max_workers
            )
            clusters = engine.cluster(vectors).members()

        return [
            self._round_robin(members, vectors)
            for members in median_order(clusters, raw[:, 0])
        ]

    def _sub_cluster(self, members: List[int], timbre: np.ndarray) -> List[List[int]]:
        """Split one loudness class by timbre, or keep it whole."""
        upper = min(self.max_sub_clusters, len(members) // 3)
        if upper < 2:
            return [[int(i) for i in members]]

        options = replace(
            self.options, min_clusters=2, max_clusters=upper, loudness_thresholds=None
        )
        engine = ClusteringEngine(options, rng=self.rng, max_workers=self.max_workers)
        try:
            assignment = engine.cluster(timbre[members])
        except DegenerateClusteringError as e:
            logger.debug(f"Keeping loudness class intact: {e}")
            return [[int(i) for i in members]]

        return [[int(members[i]) for i in local] for local in assignment.members() if local]

    def _round_robin(self, members: List[int], vectors: np.ndarray) -> List[int]:
        order = farthest_point_order(vectors[members], self.options.distance_metric)
        return [int(members[i]) for i in order]


def create_grouping_pipeline(config: Optional[Dict[str, Any]] = None) -> GroupingPipeline:
    """
    Create a GroupingPipeline from a full configuration dictionary.

    Reads the ``audio``, ``features``, ``clustering``, ``grouping`` and
    ``performance`` sections.
    """
    config = config or {}
    grouping = config.get("grouping", {}) or {}
    return GroupingPipeline(
        extractor=create_feature_extractor(config.get("features")),
        options=ClusteringOptions.from_config(config.get("clustering"), grouping),
        loader=create_audio_loader(config.get("audio")),
        max_workers=(config.get("performance", {}) or {}).get("max_workers", 4),
        sub_cluster_threshold=grouping.get("sub_cluster_threshold", SUB_CLUSTER_THRESHOLD),
        max_sub_clusters=grouping.get("max_sub_clusters", MAX_SUB_CLUSTERS),
    )
