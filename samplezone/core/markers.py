"""
Transient marker and region operations.

Markers are immutable; every operation takes a marker sequence and
returns a new list sorted by position. A marker's region runs from its
position to its custom end, else the next marker, else the end of the
recording.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from samplezone.core.models import AudioSignal, RegionLengthStats, TransientMarker

AMPLITUDE_RATIO = 1.5
AMPLITUDE_FLOOR = 1e-4
OUTLIER_IQR_FACTOR = 1.5

logger = logging.getLogger(__name__)


def sort_markers(markers: Iterable[TransientMarker]) -> List[TransientMarker]:
    return sorted(markers, key=lambda m: m.position)


def _find(markers: Sequence[TransientMarker], position: int) -> int:
    for i, marker in enumerate(markers):
        if marker.position == position:
            return i
    raise KeyError(f"No marker at position {position}")


def region_end(
    marker: TransientMarker, markers: Sequence[TransientMarker], total_samples: int
) -> int:
    """End (exclusive) of the region that starts at ``marker``."""
    if marker.custom_end is not None:
        return marker.custom_end
    later = [m.position for m in markers if m.position > marker.position]
    return min(later) if later else total_samples


def region_bounds(
    markers: Sequence[TransientMarker], total_samples: int
) -> List[Tuple[int, int]]:
    """(start, end) of every region, in position order."""
    ordered = sort_markers(markers)
    return [(m.position, region_end(m, ordered, total_samples)) for m in ordered]


def merge_detected(
    markers: Sequence[TransientMarker], positions: Iterable[int]
) -> List[TransientMarker]:
    """
    Replace previously detected (unassigned) markers with new detections.

    Grouped markers are kept; a detection that lands on an existing
    grouped marker is dropped.
    """
    kept = [m for m in markers if m.group is not None]
    taken = {m.position for m in kept}
    for pos in positions:
        if pos not in taken:
            kept.append(TransientMarker(int(pos)))
            taken.add(pos)
    return sort_markers(kept)


def add_marker(
    markers: Sequence[TransientMarker], position: int, group: Optional[int] = None
) -> List[TransientMarker]:
    if any(m.position == position for m in markers):
        raise ValueError(f"A marker already exists at position {position}")
    return sort_markers(list(markers) + [TransientMarker(position, group)])


def delete_marker(
    markers: Sequence[TransientMarker], position: int
) -> List[TransientMarker]:
    index = _find(markers, position)
    return sort_markers(m for i, m in enumerate(markers) if i != index)


def move_marker(
    markers: Sequence[TransientMarker], position: int, new_position: int
) -> List[TransientMarker]:
    """Move a marker; a custom end that would precede it is dropped."""
    if new_position != position and any(m.position == new_position for m in markers):
        raise ValueError(f"A marker already exists at position {new_position}")
    index = _find(markers, position)
    marker = markers[index]
    custom_end = marker.custom_end
    if custom_end is not None and custom_end <= new_position:
        custom_end = None
    updated = list(markers)
    updated[index] = replace(marker, position=new_position, custom_end=custom_end)
    return sort_markers(updated)


def set_custom_end(
    markers: Sequence[TransientMarker], position: int, end: Optional[int]
) -> List[TransientMarker]:
    """Set (or with ``end=None`` reset) the custom end of one region."""
    index = _find(markers, position)
    updated = list(markers)
    updated[index] = replace(markers[index], custom_end=end)
    return sort_markers(updated)


def reset_custom_end(markers: Sequence[TransientMarker], position: int) -> List[TransientMarker]:
    return set_custom_end(markers, position, None)


def _in_range(marker: TransientMarker, low: int, high: int) -> bool:
    return low <= marker.position <= high


def assign_group(
    markers: Sequence[TransientMarker], low: int, high: int, group: int
) -> List[TransientMarker]:
    """Assign every marker with position in ``[low, high]`` to ``group``."""
    return sort_markers(
        replace(m, group=group) if _in_range(m, low, high) else m for m in markers
    )


def assign_incrementally(
    markers: Sequence[TransientMarker], low: int, high: int, first_group: int = 1
) -> List[TransientMarker]:
    """Give the markers in ``[low, high]`` consecutive groups, in position order."""
    result = []
    group = first_group
    for marker in sort_markers(markers):
        if _in_range(marker, low, high):
            marker = replace(marker, group=group)
            group += 1
        result.append(marker)
    return result


def unassign(
    markers: Sequence[TransientMarker], low: int, high: int
) -> List[TransientMarker]:
    return sort_markers(
        replace(m, group=None) if _in_range(m, low, high) else m for m in markers
    )


def delete_transients_in_range(
    markers: Sequence[TransientMarker], low: int, high: int
) -> List[TransientMarker]:
    """Delete unassigned markers in ``[low, high]``; grouped markers stay."""
    return sort_markers(
        m for m in markers if not (m.group is None and _in_range(m, low, high))
    )


def merge_with_next(
    markers: Sequence[TransientMarker], position: int, total_samples: int
) -> List[TransientMarker]:
    """
    Absorb the following region into the region at ``position``.

    The merged region ends where the following region ended. Without a
    following marker the markers are returned unchanged.
    """
    ordered = sort_markers(markers)
    index = _find(ordered, position)
    if index + 1 >= len(ordered):
        return ordered
    following = ordered[index + 1]
    end = region_end(following, ordered, total_samples)
    merged = replace(ordered[index], custom_end=end)
    return ordered[:index] + [merged] + ordered[index + 2:]


def merge_with_previous(
    markers: Sequence[TransientMarker], position: int, total_samples: int
) -> List[TransientMarker]:
    """Absorb the region at ``position`` into the preceding region."""
    ordered = sort_markers(markers)
    index = _find(ordered, position)
    if index == 0:
        return ordered
    return merge_with_next(ordered, ordered[index - 1].position, total_samples)


def shift_transients(
    markers: Sequence[TransientMarker],
    old_offset_ms: float,
    new_offset_ms: float,
    sample_rate: int,
    total_samples: int,
) -> List[TransientMarker]:
    """
    Re-apply a changed detection offset to unassigned markers.

    Grouped markers are left where they are; a shifted marker that would
    collide with another marker is dropped.
    """
    delta = int(new_offset_ms * sample_rate / 1000.0) - int(
        old_offset_ms * sample_rate / 1000.0
    )
    fixed = [m for m in markers if m.group is not None]
    taken = {m.position for m in fixed}
    shifted = []
    for marker in sort_markers(m for m in markers if m.group is None):
        pos = min(max(marker.position + delta, 0), max(total_samples - 1, 0))
        if pos in taken:
            continue
        taken.add(pos)
        end = marker.custom_end
        shifted.append(TransientMarker(pos, None, end if end is not None and end > pos else None))
    return sort_markers(fixed + shifted)


def group_markers(markers: Sequence[TransientMarker]) -> Dict[int, List[TransientMarker]]:
    """Assigned markers by group number, each list in position order."""
    groups: Dict[int, List[TransientMarker]] = {}
    for marker in sort_markers(markers):
        if marker.group is not None:
            groups.setdefault(marker.group, []).append(marker)
    return groups


def region_length_stats(
    markers: Sequence[TransientMarker],
    total_samples: int,
    context: Optional[Sequence[TransientMarker]] = None,
) -> Optional[RegionLengthStats]:
    """
    Detect abnormally long regions with the 1.5 x IQR rule.

    Quartiles are taken by index into the sorted lengths (n//4, n//2,
    3n//4). Region ends are resolved against ``context`` (default:
    ``markers``), so a subset can be checked against the full layout.

    Returns:
        RegionLengthStats, or None for fewer than 3 markers or when no
        region exceeds the upper bound
    """
    if len(markers) < 3:
        return None

    context = markers if context is None else context
    ordered = sort_markers(markers)
    lengths = [region_end(m, context, total_samples) - m.position for m in ordered]
    by_length = sorted(lengths)
    n = len(by_length)

    median = by_length[n // 2]
    q1 = by_length[n // 4]
    q3 = by_length[(3 * n) // 4]
    iqr = q3 - q1
    upper = q3 + int(OUTLIER_IQR_FACTOR * iqr)

    outliers = [m.position for m, length in zip(ordered, lengths) if length > upper]
    if not outliers:
        return None

    normal = [length for length in lengths if length <= upper]
    return RegionLengthStats(
        median=median,
        q1=q1,
        q3=q3,
        iqr=iqr,
        upper_bound=upper,
        outliers=outliers,
        suggested_trim_length=max(normal),
    )


def trim_outliers(
    markers: Sequence[TransientMarker], stats: RegionLengthStats
) -> List[TransientMarker]:
    """
    Cap each outlier region at the suggested trim length.

    A trim length below one sample cannot form a region, so the markers
    are returned unchanged.
    """
    if stats.suggested_trim_length < 1:
        return sort_markers(markers)
    outliers = set(stats.outliers)
    return sort_markers(
        replace(m, custom_end=m.position + stats.suggested_trim_length)
        if m.position in outliers else m
        for m in markers
    )


def extract_regions(
    signal: AudioSignal, markers: Sequence[TransientMarker]
) -> List[AudioSignal]:
    """Slice the signal into one AudioSignal per marker region."""
    return [signal.slice(start, end) for start, end in region_bounds(markers, len(signal))]


def suggest_amplitude_groups(
    signal: AudioSignal,
    markers: Sequence[TransientMarker],
    n_groups: Optional[int] = None,
    ratio: float = AMPLITUDE_RATIO,
) -> Dict[int, List[TransientMarker]]:
    """
    Suggest velocity groups from each region's peak amplitude.

    Regions are ranked loudest first. Without ``n_groups`` a new group
    starts wherever a peak is more than ``ratio`` times the next one;
    otherwise the ranking is split into ``n_groups`` near-equal runs.
    Groups are numbered from 1, loudest first.
    """
    ordered = sort_markers(markers)
    if not ordered:
        return {}

    samples = signal.samples
    peaks = []
    for marker, (start, end) in zip(ordered, region_bounds(ordered, len(signal))):
        region = samples[start:min(end, len(samples))]
        peaks.append(float(np.max(np.abs(region))) if region.size else 0.0)

    ranked = sorted(zip(ordered, peaks), key=lambda item: item[1], reverse=True)

    groups: Dict[int, List[TransientMarker]] = {}
    if n_groups is None:
        group = 1
        for i, (marker, peak) in enumerate(ranked):
            groups.setdefault(group, []).append(marker)
            if i + 1 < len(ranked) and peak / max(ranked[i + 1][1], AMPLITUDE_FLOOR) > ratio:
                group += 1
    else:
        if n_groups < 1:
            raise ValueError(f"n_groups must be >= 1, got {n_groups}")
        size, remainder = divmod(len(ranked), n_groups)
        index = 0
        for group in range(1, n_groups + 1):
            count = size + (1 if group <= remainder else 0)
            if count:
                groups[group] = [marker for marker, _ in ranked[index:index + count]]
            index += count

    logger.debug(f"Suggested {len(groups)} amplitude groups for {len(ranked)} regions")
    return groups


def apply_groups(
    markers: Sequence[TransientMarker], groups: Dict[int, List[TransientMarker]]
) -> List[TransientMarker]:
    """Write a suggestion such as suggest_amplitude_groups() onto the markers."""
    lookup = {m.position: group for group, members in groups.items() for m in members}
    return sort_markers(
        replace(m, group=lookup[m.position]) if m.position in lookup else m
        for m in markers
    )
