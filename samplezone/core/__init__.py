"""
Core module containing data models, signal preparation, feature
extraction, marker editing and the grouping pipeline.

Uses lazy imports for modules with heavy dependencies (librosa, scikit-learn).
"""

# Models are lightweight - import directly
from samplezone.core.models import (
    ANALYSIS_SAMPLE_RATE,
    AudioSignal,
    ClusterAssignment,
    ClusteringMethod,
    ClusteringOptions,
    DistanceMetric,
    GroupingResult,
    OnsetAlgorithm,
    RegionLengthStats,
    SampleFeatures,
    TransientMarker,
)

__all__ = [
    # Models (always available)
    "ANALYSIS_SAMPLE_RATE",
    "AudioSignal",
    "ClusterAssignment",
    "ClusteringMethod",
    "ClusteringOptions",
    "DistanceMetric",
    "GroupingResult",
    "OnsetAlgorithm",
    "RegionLengthStats",
    "SampleFeatures",
    "TransientMarker",
    # Heavy modules (lazy loaded)
    "AudioLoader",
    "create_audio_loader",
    "prepare_signal",
    "FeatureExtractor",
    "create_feature_extractor",
    "TransientDetector",
    "create_transient_detector",
    # Batch processing and grouping
    "FeatureBatchProcessor",
    "BatchResult",
    "GroupingPipeline",
    "create_grouping_pipeline",
    "compare_groupings",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("AudioLoader", "create_audio_loader", "prepare_signal"):
        from samplezone.core import loader
        return getattr(loader, name)
    elif name in ("FeatureExtractor", "create_feature_extractor"):
        from samplezone.core.features import FeatureExtractor, create_feature_extractor
        return FeatureExtractor if name == "FeatureExtractor" else create_feature_extractor
    elif name in ("TransientDetector", "create_transient_detector"):
        from samplezone.core.transients import TransientDetector, create_transient_detector
        return TransientDetector if name == "TransientDetector" else create_transient_detector
    elif name in ("FeatureBatchProcessor", "BatchResult"):
        from samplezone.core.batch_processor import BatchResult, FeatureBatchProcessor
        return FeatureBatchProcessor if name == "FeatureBatchProcessor" else BatchResult
    elif name in ("GroupingPipeline", "create_grouping_pipeline"):
        from samplezone.core.grouping import GroupingPipeline, create_grouping_pipeline
        return GroupingPipeline if name == "GroupingPipeline" else create_grouping_pipeline
    elif name == "compare_groupings":
        from samplezone.core.evaluation import compare_groupings
        return compare_groupings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
