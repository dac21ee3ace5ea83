"""Tests for two-stage grouping."""

import numpy as np
import pytest

from samplezone.clustering.distance import pairwise_distances
from samplezone.core.grouping import (
    GroupingPipeline,
    ZScoreNormalizer,
    create_grouping_pipeline,
    loudness_labels,
    optimal_loudness_classes,
    timbre_weight_vector,
)
from samplezone.core.models import AudioSignal, ClusteringOptions, SampleFeatures
from samplezone.utils.config import get_default_config

SR = 44100
TIERED_RMS = [0.02, 0.021, 0.019, 0.25, 0.24, 0.26, 0.6, 0.58, 0.61, 0.9, 0.88, 0.92]


def assert_partition(clusters, n):
    flat = [i for members in clusters for i in members]
    assert sorted(flat) == list(range(n))
    assert all(members for members in clusters)


class TestZScoreNormalizer:
    def test_columns_have_zero_mean_unit_std(self):
        X = np.random.default_rng(0).normal(5.0, 3.0, size=(50, 4))
        Z = ZScoreNormalizer().fit_transform(X)
        np.testing.assert_allclose(Z.mean(axis=0), 0.0, atol=1e-9)
        np.testing.assert_allclose(Z.std(axis=0), 1.0, atol=1e-9)

    def test_constant_column_maps_to_zero(self):
        X = np.column_stack([np.full(5, 7.0), np.arange(5.0)])
        Z = ZScoreNormalizer().fit_transform(X)
        assert np.all(Z[:, 0] == 0)
        assert np.all(np.isfinite(Z))

    def test_transform_before_fit(self):
        with pytest.raises(RuntimeError):
            ZScoreNormalizer().transform(np.zeros((2, 2)))


class TestLoudnessStage:
    def test_small_sets_use_one_class(self):
        assert optimal_loudness_classes([0.1, 0.5, 0.9], ClusteringOptions()) == 1
        assert optimal_loudness_classes(np.linspace(0, 1, 8), ClusteringOptions()) == 1

    def test_class_count_follows_gaps(self):
        options = ClusteringOptions(max_clusters=4)
        assert optimal_loudness_classes(TIERED_RMS, options) == 4

    def test_class_count_respects_max_clusters(self):
        options = ClusteringOptions(min_clusters=2, max_clusters=2)
        assert optimal_loudness_classes(TIERED_RMS, options) == 2

    def test_explicit_thresholds(self):
        options = ClusteringOptions(loudness_thresholds=(0.1, 0.5))
        labels = loudness_labels([0.05, 0.2, 0.7, 0.1], options)
        assert list(labels) == [0, 1, 2, 0]


class TestGroupFeatures:
    def test_tiered_rms_gives_four_ordered_clusters(self, make_features):
        features = [make_features(rms, seed=i) for i, rms in enumerate(TIERED_RMS)]
        pipeline = GroupingPipeline(options=ClusteringOptions(max_clusters=4, seed=0))
        clusters = pipeline.group_features(features)

        assert len(clusters) == 4
        assert [len(c) for c in clusters] == [3, 3, 3, 3]
        tiers = [sorted(c) for c in clusters]
        assert tiers == [[0, 1, 2], [3, 4, 5], [6, 7, 8], [9, 10, 11]]
        medians = [np.median([TIERED_RMS[i] for i in c]) for c in clusters]
        assert medians == sorted(medians)

    def test_crowded_class_is_split_by_timbre(self, make_features):
        dark = [make_features(0.5, centroid=500.0)] * 3
        bright = [make_features(0.5, centroid=5000.0)] * 3
        pipeline = GroupingPipeline(options=ClusteringOptions(seed=1))
        clusters = pipeline.group_features(dark + bright)

        assert_partition(clusters, 6)
        assert sorted(sorted(c) for c in clusters) == [[0, 1, 2], [3, 4, 5]]

    def test_small_class_is_kept_intact(self, make_features):
        features = [make_features(0.5, centroid=c) for c in (500.0, 5000.0, 9000.0)]
        clusters = GroupingPipeline().group_features(features)
        assert len(clusters) == 1
        assert sorted(clusters[0]) == [0, 1, 2]

    def test_identical_recordings(self, make_features):
        features = [make_features(0.3)] * 7
        clusters = GroupingPipeline(options=ClusteringOptions(seed=0)).group_features(features)
        assert clusters == [clusters[0]]
        assert sorted(clusters[0]) == list(range(7))

    def test_round_robin_order_starts_near_centroid(self, make_features):
        features = [make_features(0.5, seed=i) for i in range(3)]
        pipeline = GroupingPipeline()
        order = pipeline.group_features(features)[0]

        raw = np.vstack([f.as_array() for f in features])
        timbre = ZScoreNormalizer().fit_transform(raw)[:, 3:] * timbre_weight_vector()
        centroid = timbre.mean(axis=0, keepdims=True)
        to_centroid = pairwise_distances(timbre, centroid)[:, 0]
        assert order[0] == int(np.argmin(to_centroid))

    def test_empty_and_single(self, make_features):
        pipeline = GroupingPipeline()
        assert pipeline.group_features([]) == []
        assert pipeline.group_features([make_features(0.1)]) == [[0]]


class TestSingleStage:
    def test_partitions_all_inputs(self, make_features):
        features = [make_features(rms, seed=i) for i, rms in enumerate(TIERED_RMS)]
        pipeline = GroupingPipeline(options=ClusteringOptions(max_clusters=4, seed=0))
        clusters = pipeline.group_single_stage(features)
        assert_partition(clusters, len(features))
        medians = [np.median([TIERED_RMS[i] for i in c]) for c in clusters]
        assert medians == sorted(medians)

    def test_two_inputs_form_one_cluster(self, make_features):
        clusters = GroupingPipeline().group_single_stage([make_features(0.1), make_features(0.9)])
        assert clusters == [[0, 1]] or clusters == [[1, 0]]


class TestGroupingEndToEnd:
    def test_group_signals_reports_skipped(self, make_tone):
        signals = [AudioSignal(make_tone(amplitude=a), SR) for a in (0.1, 0.2)]
        signals.append(AudioSignal(np.zeros(0), SR))
        result = GroupingPipeline().group_signals(signals, ["soft", "loud", "empty"])

        assert result.identifiers == ["soft", "loud"]
        assert list(result.skipped) == ["empty"]
        assert_partition(result.clusters, 2)
        assert len(result.features) == 2

    def test_group_files(self, tmp_path, write_wav, make_tone):
        paths = [write_wav(f"hit_{i}.wav", make_tone(amplitude=0.1 * (i + 1))) for i in range(3)]
        missing = tmp_path / "gone.wav"
        result = GroupingPipeline(max_workers=2).group_files(paths + [missing])

        assert result.identifiers == [str(p) for p in paths]
        assert str(missing) in result.skipped
        assert_partition(result.clusters, 3)
        assert set(result.to_dict()["features"]) == set(result.identifiers)

    def test_factory_uses_config(self):
        config = get_default_config()
        config["clustering"]["max_clusters"] = 5
        config["grouping"]["max_sub_clusters"] = 2
        config["performance"]["max_workers"] = 3
        pipeline = create_grouping_pipeline(config)
        assert pipeline.options.max_clusters == 5
        assert pipeline.max_sub_clusters == 2
        assert pipeline.max_workers == 3
