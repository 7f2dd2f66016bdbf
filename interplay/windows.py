from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TypeVar

from interplay.models import ConfidenceBin, TimeBucket, TimedEvent

T = TypeVar("T")

CONFIDENCE_BIN_EDGES = (0.0, 0.2, 0.4, 0.6, 0.8, 1.0)


def bucket_index(time_seconds: float, width_seconds: float) -> int:
    if width_seconds <= 0:
        raise ValueError("width_seconds must be positive.")
    return int(math.floor(time_seconds / width_seconds))


def group_by_bucket(
    items: Iterable[T],
    width_seconds: float,
    time_of: Callable[[T], float],
) -> dict[int, list[T]]:
    """Group items into fixed-width windows keyed by window index."""

    grouped: dict[int, list[T]] = {}
    for item in items:
        grouped.setdefault(bucket_index(time_of(item), width_seconds), []).append(item)
    return grouped


def build_buckets(events: Iterable[TimedEvent], width_seconds: float) -> list[TimeBucket]:
    """Occupied buckets in time order. Empty windows are not materialized."""

    grouped = group_by_bucket(events, width_seconds, lambda event: event.time)
    return [
        TimeBucket(
            index=index,
            start=index * width_seconds,
            end=(index + 1) * width_seconds,
            events=tuple(grouped[index]),
        )
        for index in sorted(grouped)
    ]


def span_count(indices: Iterable[int]) -> int:
    """Number of windows from the first to the last index, gaps included."""

    ordered = sorted(indices)
    if not ordered:
        return 0
    return ordered[-1] - ordered[0] + 1


def contiguous_runs(indices: Iterable[int]) -> list[list[int]]:
    """Split bucket indices into runs of consecutive values."""

    runs: list[list[int]] = []
    for index in sorted(set(indices)):
        if runs and index == runs[-1][-1] + 1:
            runs[-1].append(index)
        else:
            runs.append([index])
    return runs


def labelled_spans(
    labels: Mapping[int, str],
    width_seconds: float,
    *,
    first: int | None = None,
    last: int | None = None,
    gap_label: str = "low",
) -> list[tuple[float, float, str]]:
    """Merged (start, end, label) spans covering buckets ``first`` to ``last``.

    Only labelled buckets are visited; each gap between them becomes a single
    ``gap_label`` span.
    """

    indices = sorted(labels)
    if not indices and (first is None or last is None):
        return []
    low = indices[0] if first is None else first
    high = indices[-1] if last is None else last

    spans: list[tuple[float, float, str]] = []
    cursor = low
    for index in indices:
        if index < low or index > high:
            continue
        if index > cursor:
            spans.append((cursor * width_seconds, index * width_seconds, gap_label))
        spans.append((index * width_seconds, (index + 1) * width_seconds, labels[index]))
        cursor = index + 1
    if cursor <= high:
        spans.append((cursor * width_seconds, (high + 1) * width_seconds, gap_label))
    return run_length_encode(spans)


def confidence_histogram(values: Iterable[float]) -> list[ConfidenceBin]:
    """Count values into half-open bins [lower, upper)."""

    counts = [0] * (len(CONFIDENCE_BIN_EDGES) - 1)
    for value in values:
        for idx, (lower, upper) in enumerate(zip(CONFIDENCE_BIN_EDGES, CONFIDENCE_BIN_EDGES[1:])):
            if lower <= value < upper:
                counts[idx] += 1
                break

    return [
        ConfidenceBin(lower=lower, upper=upper, count=count)
        for (lower, upper), count in zip(zip(CONFIDENCE_BIN_EDGES, CONFIDENCE_BIN_EDGES[1:]), counts)
    ]


def run_length_encode(labels: Sequence[tuple[float, float, str]]) -> list[tuple[float, float, str]]:
    """Merge adjacent (start, end, label) spans that share a label."""

    merged: list[tuple[float, float, str]] = []
    for start, end, label in labels:
        if merged and merged[-1][2] == label:
            merged[-1] = (merged[-1][0], end, label)
        else:
            merged.append((start, end, label))
    return merged


def safe_ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    if math.isnan(value):
        return minimum
    return max(minimum, min(maximum, value))
