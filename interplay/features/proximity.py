from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from interplay.models import Track
from interplay.windows import bucket_index, group_by_bucket, labelled_spans, safe_ratio

logger = logging.getLogger(__name__)

MIRROR_COSINE = -0.7
MIRROR_MAGNITUDE_RATIO = 0.5
SYNCHRONIZED_EVENT_SCORE = 0.5


@dataclass(slots=True)
class ActivityWindow:
    start: float
    end: float
    level: str


@dataclass(slots=True)
class ActivityProfile:
    """Per-person movement summary."""

    entity_id: str
    role: str
    average_displacement: float
    static_ratio: float
    level: str
    activity_area: tuple[float, float, float, float] | None = None
    windows: list[ActivityWindow] = field(default_factory=list)


@dataclass(slots=True)
class MovementEvent:
    time: float
    kind: str
    score: float


@dataclass(slots=True)
class InteractionEvent:
    time: float
    kind: str
    distance: float


@dataclass(slots=True)
class ProximityResult:
    proximity_score: float
    movement_synchrony: float
    activity_levels: dict[str, ActivityProfile]
    average_distance: float | None = None
    closest_approach: float | None = None
    synchronized_events: list[MovementEvent] = field(default_factory=list)
    mirroring_count: int = 0
    interaction_events: list[InteractionEvent] = field(default_factory=list)
    bucket_count: int = 0
    paired_bucket_count: int = 0


def analyze_proximity(
    person_tracks: Sequence[Track],
    *,
    bucket_seconds: float = 5.0,
    proximity_threshold: float = 0.3,
    movement_threshold: float = 0.01,
    high_activity_threshold: float = 0.05,
    contact_distance: float = 0.1,
    approach_delta: float = 0.02,
) -> ProximityResult:
    """Score spatial closeness and movement synchrony between tracked persons.

    Buckets span every window between the first and last person detection.
    Windows with fewer than two persons present still count in the
    denominators, so sparse detection lowers both scores.
    """

    tracks = [track for track in person_tracks if track.events]
    if not tracks:
        return ProximityResult(proximity_score=0.0, movement_synchrony=0.0, activity_levels={})

    first_bucket = min(bucket_index(track.start, bucket_seconds) for track in tracks)
    last_bucket = max(bucket_index(track.end, bucket_seconds) for track in tracks)
    bucket_count = last_bucket - first_bucket + 1

    centers = {track.entity_id: _bucket_centers(track, bucket_seconds) for track in tracks}
    displacements = {track.entity_id: _bucket_displacements(track, bucket_seconds) for track in tracks}

    close_buckets = 0
    synchrony_total = 0.0
    mirroring_count = 0
    distances: list[tuple[float, float]] = []
    synchronized_events: list[MovementEvent] = []

    occupied = sorted({index for track_centers in centers.values() for index in track_centers})
    for index in occupied:
        present = [track for track in tracks if index in centers[track.entity_id]]
        if len(present) < 2:
            continue

        present.sort(key=lambda track: (-len(track.events), track.entity_id))
        first, second = present[0].entity_id, present[1].entity_id
        bucket_start = index * bucket_seconds

        distance = float(np.linalg.norm(centers[first][index] - centers[second][index]))
        distances.append((bucket_start, distance))
        if distance < proximity_threshold:
            close_buckets += 1

        score, cosine, magnitude_ratio = _movement_alignment(
            displacements[first].get(index),
            displacements[second].get(index),
            movement_threshold,
        )
        synchrony_total += score
        if score >= SYNCHRONIZED_EVENT_SCORE:
            synchronized_events.append(MovementEvent(time=bucket_start, kind="synchronized", score=round(score, 4)))
        elif cosine <= MIRROR_COSINE and magnitude_ratio >= MIRROR_MAGNITUDE_RATIO:
            mirroring_count += 1
            synchronized_events.append(MovementEvent(time=bucket_start, kind="mirrored", score=round(-cosine, 4)))

    activity_levels = {
        track.entity_id: _activity_profile(
            track,
            bucket_seconds=bucket_seconds,
            movement_threshold=movement_threshold,
            high_activity_threshold=high_activity_threshold,
        )
        for track in tracks
    }

    result = ProximityResult(
        proximity_score=safe_ratio(close_buckets, bucket_count),
        movement_synchrony=safe_ratio(synchrony_total, bucket_count),
        activity_levels=activity_levels,
        average_distance=float(np.mean([distance for _, distance in distances])) if distances else None,
        closest_approach=min(distance for _, distance in distances) if distances else None,
        synchronized_events=synchronized_events,
        mirroring_count=mirroring_count,
        interaction_events=_interaction_events(
            distances,
            contact_distance=contact_distance,
            approach_delta=approach_delta,
        ),
        bucket_count=bucket_count,
        paired_bucket_count=len(distances),
    )
    logger.debug(
        "Proximity analysis: %d/%d paired buckets, proximity=%.3f synchrony=%.3f",
        result.paired_bucket_count,
        bucket_count,
        result.proximity_score,
        result.movement_synchrony,
    )
    return result


def _bucket_centers(track: Track, bucket_seconds: float) -> dict[int, np.ndarray]:
    grouped = group_by_bucket(track.events, bucket_seconds, lambda event: event.time)
    return {
        index: np.mean([event.box.center for event in events if event.box is not None], axis=0)
        for index, events in grouped.items()
    }


def _track_steps(track: Track) -> list[tuple[float, np.ndarray]]:
    points = [(event.time, np.asarray(event.box.center)) for event in track.events if event.box is not None]
    return [(current[0], current[1] - previous[1]) for previous, current in zip(points, points[1:])]


def _bucket_displacements(track: Track, bucket_seconds: float) -> dict[int, np.ndarray]:
    grouped = group_by_bucket(_track_steps(track), bucket_seconds, lambda step: step[0])
    return {index: np.mean([vector for _, vector in steps], axis=0) for index, steps in grouped.items()}


def _movement_alignment(
    first: np.ndarray | None,
    second: np.ndarray | None,
    movement_threshold: float,
) -> tuple[float, float, float]:
    """Return (synchrony score, direction cosine, magnitude ratio) for two displacement vectors."""

    if first is None or second is None:
        return 0.0, 0.0, 0.0

    first_magnitude = float(np.linalg.norm(first))
    second_magnitude = float(np.linalg.norm(second))
    if first_magnitude <= movement_threshold or second_magnitude <= movement_threshold:
        return 0.0, 0.0, 0.0

    cosine = float(np.dot(first, second) / (first_magnitude * second_magnitude))
    magnitude_ratio = min(first_magnitude, second_magnitude) / max(first_magnitude, second_magnitude)
    return magnitude_ratio * max(0.0, cosine), cosine, magnitude_ratio


def _activity_profile(
    track: Track,
    *,
    bucket_seconds: float,
    movement_threshold: float,
    high_activity_threshold: float,
) -> ActivityProfile:
    steps = _track_steps(track)
    magnitudes = [float(np.linalg.norm(vector)) for _, vector in steps]
    average_displacement = float(np.mean(magnitudes)) if magnitudes else 0.0
    static_ratio = (
        sum(1 for magnitude in magnitudes if magnitude < movement_threshold) / len(magnitudes)
        if magnitudes
        else 1.0
    )

    if average_displacement < 0.02 and static_ratio > 0.7:
        level = "low"
    elif average_displacement > 0.08 or static_ratio < 0.3:
        level = "high"
    else:
        level = "medium"

    activity_area = None
    centers = [event.box.center for event in track.events if event.box is not None]
    if len(centers) >= 3:
        xs = [x for x, _ in centers]
        ys = [y for _, y in centers]
        activity_area = (min(xs), min(ys), max(xs), max(ys))

    grouped = group_by_bucket(
        zip((time for time, _ in steps), magnitudes),
        bucket_seconds,
        lambda item: item[0],
    )
    labels: dict[int, str] = {}
    for index, items in grouped.items():
        mean_magnitude = float(np.mean([magnitude for _, magnitude in items]))
        if mean_magnitude > high_activity_threshold:
            labels[index] = "high"
        elif mean_magnitude > movement_threshold:
            labels[index] = "medium"
        else:
            labels[index] = "low"
    spans = labelled_spans(
        labels,
        bucket_seconds,
        first=bucket_index(track.start, bucket_seconds),
        last=bucket_index(track.end, bucket_seconds),
    )

    return ActivityProfile(
        entity_id=track.entity_id,
        role=track.role.value,
        average_displacement=average_displacement,
        static_ratio=static_ratio,
        level=level,
        activity_area=activity_area,
        windows=[ActivityWindow(start=start, end=end, level=label) for start, end, label in spans],
    )


def _interaction_events(
    distances: list[tuple[float, float]],
    *,
    contact_distance: float,
    approach_delta: float,
) -> list[InteractionEvent]:
    events: list[InteractionEvent] = []
    for (_, previous), (time, current) in zip(distances, distances[1:]):
        delta = current - previous
        if delta < -approach_delta:
            kind = "approach"
        elif delta > approach_delta:
            kind = "retreat"
        elif current < contact_distance:
            kind = "contact"
        else:
            continue
        events.append(InteractionEvent(time=time, kind=kind, distance=round(current, 4)))
    return events
