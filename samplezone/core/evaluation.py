"""
Compare an automatic grouping against a manual reference grouping.

Used to tune grouping parameters: agreement scores (ARI, NMI, purity,
V-measure, B-cubed), label-mapped accuracies, a confusion matrix with a
merge/split audit, and internal cluster-quality indices when feature
vectors are available.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment
from sklearn import metrics
from sklearn.metrics.cluster import contingency_matrix

MERGE_SHARE = 0.6
SPLIT_TOP_SHARE = 0.7
SPLIT_SECOND_SHARE = 0.3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassMetrics:
    precision: float
    recall: float
    f1: float


@dataclass
class GroupingComparison:
    """Agreement between a manual and an automatic grouping."""

    samples_scored: int
    manual_cluster_count: int
    auto_cluster_count: int
    adjusted_rand_index: float
    normalized_mutual_info: float
    purity: float
    homogeneity: float
    completeness: float
    v_measure: float
    bcubed_precision: float
    bcubed_recall: float
    bcubed_f1: float
    mapped_accuracy: float
    one_to_one_accuracy: float
    manual_labels: List[int]
    auto_labels: List[int]
    confusion_matrix: List[List[int]]
    label_mapping: Dict[int, int]
    per_class: Dict[int, ClassMetrics] = field(default_factory=dict)
    merges: List[str] = field(default_factory=list)
    splits: List[str] = field(default_factory=list)
    silhouette: Optional[float] = None
    davies_bouldin: Optional[float] = None
    calinski_harabasz: Optional[float] = None

    @property
    def mapping_gap(self) -> float:
        """How much many-to-one mapping flatters the result."""
        return self.mapped_accuracy - self.one_to_one_accuracy

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mapping_gap"] = self.mapping_gap
        return data


def labels_from_clusters(
    clusters: Sequence[Sequence[int]], identifiers: Sequence[str]
) -> Dict[str, int]:
    """Turn index clusters (as returned by GroupingPipeline) into id -> label."""
    return {
        identifiers[index]: label
        for label, members in enumerate(clusters)
        for index in members
    }


def _bcubed(manual: np.ndarray, auto: np.ndarray) -> Tuple[float, float, float]:
    same_manual = manual[:, None] == manual[None, :]
    same_auto = auto[:, None] == auto[None, :]
    both = (same_manual & same_auto).sum(axis=1)
    precision = float(np.mean(both / same_auto.sum(axis=1)))
    recall = float(np.mean(both / same_manual.sum(axis=1)))
    f1 = 0.0 if precision + recall == 0 else 2 * precision * recall / (precision + recall)
    return precision, recall, f1


def _merges_and_splits(
    table: np.ndarray, manual_labels: List[int], auto_labels: List[int]
) -> Tuple[List[str], List[str]]:
    """
    Merges: an auto cluster that holds the bulk (>= 60%) of two or more
    manual groups. Splits: a manual group whose largest auto share is
    under 70% while the second largest is at least 30%.
    """
    shares = table / np.maximum(table.sum(axis=1, keepdims=True), 1)
    merges = []
    for j, auto_label in enumerate(auto_labels):
        rows = np.flatnonzero(shares[:, j] >= MERGE_SHARE)
        if rows.size > 1:
            parts = ", ".join(
                f"M{manual_labels[i]}({int(shares[i, j] * 100)}%)" for i in rows
            )
            merges.append(f"{{{parts}}} -> Auto {auto_label}")

    splits = []
    for i, manual_label in enumerate(manual_labels):
        ranked = np.argsort(-shares[i], kind="stable")
        if len(ranked) < 2:
            continue
        top, second = shares[i, ranked[0]], shares[i, ranked[1]]
        if top < SPLIT_TOP_SHARE and second >= SPLIT_SECOND_SHARE:
            parts = ", ".join(
                f"A{auto_labels[j]}({int(shares[i, j] * 100)}%)" for j in ranked[:2]
            )
            splits.append(f"Manual {manual_label} -> {{{parts}}}")
    return merges, splits


def compare_groupings(
    manual: Mapping[str, int],
    automatic: Mapping[str, int],
    vectors: Optional[Mapping[str, Sequence[float]]] = None,
) -> GroupingComparison:
    """
    Score an automatic grouping against a manual one.

    Only identifiers present in both groupings are scored.

    Args:
        manual: Identifier -> reference group
        automatic: Identifier -> automatic cluster
        vectors: Optional identifier -> feature vector, enabling the
            silhouette, Davies-Bouldin and Calinski-Harabasz indices of the
            automatic grouping (needs at least two clusters)

    Raises:
        ValueError: If the groupings share no identifiers
    """
    keys = sorted(set(manual) & set(automatic))
    if not keys:
        raise ValueError("Manual and automatic groupings share no identifiers")

    y_true = np.array([manual[k] for k in keys])
    y_pred = np.array([automatic[k] for k in keys])
    n = len(keys)

    manual_labels = [int(v) for v in np.unique(y_true)]
    auto_labels = [int(v) for v in np.unique(y_pred)]
    table = contingency_matrix(y_true, y_pred)

    homogeneity, completeness, v_measure = metrics.homogeneity_completeness_v_measure(
        y_true, y_pred
    )
    precision, recall, f1 = _bcubed(y_true, y_pred)

    # many-to-one: every manual group maps to its dominant auto cluster
    majority = table.argmax(axis=1)
    mapping = {manual_labels[i]: auto_labels[j] for i, j in enumerate(majority)}
    mapped_accuracy = table[np.arange(len(manual_labels)), majority].sum() / n

    rows, cols = linear_sum_assignment(table, maximize=True)
    one_to_one_accuracy = table[rows, cols].sum() / n

    col_totals = table.sum(axis=0)
    row_totals = table.sum(axis=1)
    per_class = {}
    for i, j in enumerate(majority):
        tp = table[i, j]
        p = tp / col_totals[j] if col_totals[j] else 0.0
        r = tp / row_totals[i] if row_totals[i] else 0.0
        per_class[manual_labels[i]] = ClassMetrics(
            precision=float(p),
            recall=float(r),
            f1=0.0 if p + r == 0 else float(2 * p * r / (p + r)),
        )

    merges, splits = _merges_and_splits(table, manual_labels, auto_labels)

    comparison = GroupingComparison(
        samples_scored=n,
        manual_cluster_count=len(manual_labels),
        auto_cluster_count=len(auto_labels),
        adjusted_rand_index=float(metrics.adjusted_rand_score(y_true, y_pred)),
        normalized_mutual_info=float(metrics.normalized_mutual_info_score(y_true, y_pred)),
        purity=float(table.max(axis=0).sum() / n),
        homogeneity=float(homogeneity),
        completeness=float(completeness),
        v_measure=float(v_measure),
        bcubed_precision=precision,
        bcubed_recall=recall,
        bcubed_f1=f1,
        mapped_accuracy=float(mapped_accuracy),
        one_to_one_accuracy=float(one_to_one_accuracy),
        manual_labels=manual_labels,
        auto_labels=auto_labels,
        confusion_matrix=table.tolist(),
        label_mapping=mapping,
        per_class=per_class,
        merges=merges,
        splits=splits,
    )

    if vectors is not None and 2 <= len(auto_labels) < n:
        missing = [k for k in keys if k not in vectors]
        if missing:
            logger.warning(f"No feature vector for {len(missing)} samples; skipping quality indices")
        else:
            X = np.vstack([np.asarray(vectors[k], dtype=np.float64) for k in keys])
            comparison.silhouette = float(metrics.silhouette_score(X, y_pred))
            comparison.davies_bouldin = float(metrics.davies_bouldin_score(X, y_pred))
            comparison.calinski_harabasz = float(metrics.calinski_harabasz_score(X, y_pred))

    logger.info(
        f"Compared {n} samples: ARI={comparison.adjusted_rand_index:.3f} "
        f"NMI={comparison.normalized_mutual_info:.3f} purity={comparison.purity:.3f}"
    )
    return comparison
