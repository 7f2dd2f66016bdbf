from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from interplay.models import BoundingBox, EngagementPeriod, FacePayload, TimedEvent, Track
from interplay.windows import group_by_bucket, labelled_spans, safe_ratio

logger = logging.getLogger(__name__)

MUTUAL_GAZE_MAX_VERTICAL = 0.2
MUTUAL_GAZE_MIN_HORIZONTAL = 0.1
FACE_TO_FACE_MAX_VERTICAL = 0.3
FACE_TO_FACE_MIN_HORIZONTAL = 0.2
FACE_TO_FACE_MAX_HORIZONTAL = 0.6
SYNC_MAX_SIZE_VARIANCE = 0.01
SYNC_MIN_POSITION_VARIANCE = 0.01
SYNC_MAX_POSITION_VARIANCE = 0.5
_EPSILON = 1e-9


@dataclass(slots=True)
class ProximityChange:
    time: float
    direction: str
    magnitude: float


@dataclass(slots=True)
class FaceOrientationResult:
    mutual_gaze_time: float
    face_to_face_ratio: float
    engagement_score: float
    engagement_periods: list[EngagementPeriod] = field(default_factory=list)
    emotional_synchrony: float = 0.0
    interaction_quality: str = "low"
    proximity_changes: list[ProximityChange] = field(default_factory=list)
    valid_bucket_count: int = 0
    bucket_count: int = 0


def is_mutual_gaze(first: BoundingBox, second: BoundingBox) -> bool:
    """Faces level with each other and not overlapping horizontally."""

    dx, dy = _separation(first, second)
    return dy < MUTUAL_GAZE_MAX_VERTICAL and dx > MUTUAL_GAZE_MIN_HORIZONTAL


def is_face_to_face(first: BoundingBox, second: BoundingBox) -> bool:
    """Faces roughly level and at a conversational horizontal distance."""

    dx, dy = _separation(first, second)
    return (
        dy < FACE_TO_FACE_MAX_VERTICAL
        and dx >= FACE_TO_FACE_MIN_HORIZONTAL - _EPSILON
        and dx < FACE_TO_FACE_MAX_HORIZONTAL
    )


def analyze_face_orientation(
    face_tracks: Sequence[Track],
    *,
    gaze_bucket_seconds: float = 1.0,
    engagement_bucket_seconds: float = 5.0,
    proximity_change_threshold: float = 0.05,
) -> FaceOrientationResult:
    """Derive mutual-gaze, face-to-face and engagement signals from face geometry.

    Each bucket compares its two largest detections as a proxy for the two
    participants. Only buckets with at least two faces are valid.
    """

    events = [event for track in face_tracks for event in track.events if event.box is not None]
    if not events:
        return FaceOrientationResult(mutual_gaze_time=0.0, face_to_face_ratio=0.0, engagement_score=0.0)

    grouped = group_by_bucket(events, gaze_bucket_seconds, lambda event: event.time)

    valid_buckets = 0
    gaze_buckets = 0
    face_to_face_buckets = 0
    synchronous_buckets = 0
    previous_distance: float | None = None
    proximity_changes: list[ProximityChange] = []

    for index in sorted(grouped):
        faces = _largest_boxes(grouped[index], limit=2)
        if len(faces) < 2:
            continue

        valid_buckets += 1
        first, second = faces
        if is_mutual_gaze(first, second):
            gaze_buckets += 1
        if is_face_to_face(first, second):
            face_to_face_buckets += 1
        if _is_synchronous(first, second):
            synchronous_buckets += 1

        distance = math.dist(first.center, second.center)
        if previous_distance is not None and abs(distance - previous_distance) > proximity_change_threshold:
            proximity_changes.append(
                ProximityChange(
                    time=index * gaze_bucket_seconds,
                    direction="closer" if distance < previous_distance else "farther",
                    magnitude=round(abs(distance - previous_distance), 4),
                )
            )
        previous_distance = distance

    mutual_gaze_time = safe_ratio(gaze_buckets, valid_buckets)
    face_to_face_ratio = safe_ratio(face_to_face_buckets, valid_buckets)
    engagement_score = (
        0.4 * mutual_gaze_time
        + 0.4 * face_to_face_ratio
        + 0.2 * min(1.0, len(proximity_changes) / 10)
    )

    engagement_periods = _engagement_periods(events, engagement_bucket_seconds)

    result = FaceOrientationResult(
        mutual_gaze_time=mutual_gaze_time,
        face_to_face_ratio=face_to_face_ratio,
        engagement_score=engagement_score,
        engagement_periods=engagement_periods,
        emotional_synchrony=safe_ratio(synchronous_buckets, valid_buckets),
        interaction_quality=_interaction_quality(engagement_periods),
        proximity_changes=proximity_changes,
        valid_bucket_count=valid_buckets,
        bucket_count=len(grouped),
    )
    logger.debug(
        "Face orientation: %d/%d valid buckets, engagement=%.3f",
        valid_buckets,
        len(grouped),
        engagement_score,
    )
    return result


def _separation(first: BoundingBox, second: BoundingBox) -> tuple[float, float]:
    (x1, y1), (x2, y2) = first.center, second.center
    return abs(x1 - x2), abs(y1 - y2)


def _largest_boxes(events: list[TimedEvent], *, limit: int) -> list[BoundingBox]:
    boxes = [event.box for event in events if event.box is not None]
    boxes.sort(key=lambda box: -box.size)
    return boxes[:limit]


def _is_synchronous(first: BoundingBox, second: BoundingBox) -> bool:
    size_variance = float(np.var([first.size, second.size]))
    centers = np.asarray([first.center, second.center])
    centroid = centers.mean(axis=0)
    position_variance = float(np.mean(np.sum((centers - centroid) ** 2, axis=1)))
    return (
        size_variance < SYNC_MAX_SIZE_VARIANCE
        and SYNC_MIN_POSITION_VARIANCE < position_variance < SYNC_MAX_POSITION_VARIANCE
    )


def _bucket_engagement(events: list[TimedEvent]) -> float:
    by_entity: dict[str, list[BoundingBox]] = {}
    for event in events:
        if isinstance(event.payload, FacePayload):
            by_entity.setdefault(event.payload.entity_id, []).append(event.payload.box)
    if not by_entity:
        return 0.0

    score = 0.3
    if len(by_entity) >= 2:
        score += 0.3

    sizes = [box.size for boxes in by_entity.values() for box in boxes]
    if float(np.mean(sizes)) > 0.1:
        score += 0.2

    if len(by_entity) >= 2:
        ranked = sorted(
            by_entity.values(),
            key=lambda boxes: -float(np.mean([box.size for box in boxes])),
        )
        first_center = np.mean([box.center for box in ranked[0]], axis=0)
        second_center = np.mean([box.center for box in ranked[1]], axis=0)
        distance = float(np.linalg.norm(first_center - second_center))
        if 0.1 < distance < 0.8:
            score += 0.2

    return min(1.0, score)


def _engagement_level(score: float) -> str:
    if score > 0.7:
        return "high"
    if score > 0.4:
        return "medium"
    return "low"


def _engagement_periods(events: list[TimedEvent], bucket_seconds: float) -> list[EngagementPeriod]:
    grouped = group_by_bucket(events, bucket_seconds, lambda event: event.time)
    labels = {index: _engagement_level(_bucket_engagement(bucket_events)) for index, bucket_events in grouped.items()}
    return [
        EngagementPeriod(start=start, end=end, level=level)
        for start, end, level in labelled_spans(labels, bucket_seconds, gap_label="low")
    ]


def _interaction_quality(periods: list[EngagementPeriod]) -> str:
    total = sum(period.end - period.start for period in periods)
    high = sum(period.end - period.start for period in periods if period.level == "high")
    ratio = safe_ratio(high, total)
    if ratio > 0.6:
        return "high"
    if ratio > 0.3:
        return "medium"
    return "low"
