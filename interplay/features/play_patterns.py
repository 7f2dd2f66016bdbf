from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np

from interplay.config import DEFAULT_TOY_KEYWORDS
from interplay.models import ObjectPayload, PersonPayload, TimedEvent, Track
from interplay.windows import contiguous_runs, group_by_bucket, safe_ratio

logger = logging.getLogger(__name__)

TOY_SWITCH_WINDOW_SECONDS = 30.0
CONTESTED_SWITCH_SECONDS = 10.0
MIN_EVENT_SECONDS = 2.0


@dataclass(slots=True)
class ToyUsage:
    name: str
    first_seen: float
    last_seen: float
    event_count: int
    duration: float


@dataclass(slots=True)
class ToySwitch:
    time: float
    from_toy: str
    to_toy: str


@dataclass(slots=True)
class ToyUsageSummary:
    toys: dict[str, ToyUsage] = field(default_factory=dict)
    sharing_ratio: float = 0.0
    switches: list[ToySwitch] = field(default_factory=list)
    total_play_seconds: float = 0.0


@dataclass(slots=True)
class ActivityTransition:
    time: float
    kind: str
    description: str
    object_name: str | None = None
    change_ratio: float | None = None


@dataclass(slots=True)
class CooperativePattern:
    start: float
    end: float
    duration: float
    participants: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CreativityIndicators:
    diversity_score: float = 0.0
    innovation_events: int = 0
    exploration_ratio: float = 0.0
    unique_objects: int = 0
    total_events: int = 0


@dataclass(slots=True)
class FocusEpisode:
    object_name: str
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(slots=True)
class AttentionSummary:
    episodes: list[FocusEpisode] = field(default_factory=list)
    average_focus_seconds: float = 0.0
    longest_focus_seconds: float = 0.0


@dataclass(slots=True)
class ConflictIndicators:
    contested_switches: int = 0
    conflict_frequency: float = 0.0


@dataclass(slots=True)
class PlayPatternResult:
    toy_usage: ToyUsageSummary
    activity_transitions: list[ActivityTransition]
    cooperative_patterns: list[CooperativePattern]
    creativity_indicators: CreativityIndicators
    attention: AttentionSummary = field(default_factory=AttentionSummary)
    conflict: ConflictIndicators = field(default_factory=ConflictIndicators)
    overall_score: float = 0.0


def analyze_play_patterns(
    object_tracks: Sequence[Track],
    person_tracks: Sequence[Track] = (),
    *,
    toy_keywords: Iterable[str] | None = None,
    toy_confidence_threshold: float = 0.7,
    sharing_bucket_seconds: float = 5.0,
    dominance_min_seconds: float = 15.0,
    intensity_window_seconds: float = 30.0,
    intensity_change_ratio: float = 0.5,
    cooperative_bucket_seconds: float = 10.0,
    cooperative_min_objects: int = 2,
    cooperative_min_persons: int = 1,
    cooperative_min_seconds: float = 20.0,
    innovation_baseline: int = 1,
    exploration_offset: float = 0.2,
) -> PlayPatternResult:
    """Describe object play: toy usage, transitions, cooperation and creativity."""

    object_events = sorted(
        (event for track in object_tracks for event in track.events if isinstance(event.payload, ObjectPayload)),
        key=lambda event: event.time,
    )
    person_events = sorted(
        (event for track in person_tracks for event in track.events if isinstance(event.payload, PersonPayload)),
        key=lambda event: event.time,
    )
    if not object_events:
        return PlayPatternResult(
            toy_usage=ToyUsageSummary(),
            activity_transitions=[],
            cooperative_patterns=[],
            creativity_indicators=CreativityIndicators(),
        )

    keywords = [keyword.lower() for keyword in (DEFAULT_TOY_KEYWORDS if toy_keywords is None else toy_keywords)]
    toy_events = [
        event
        for event in object_events
        if _is_toy(_object_name(event), event.confidence, keywords, toy_confidence_threshold)
    ]

    toy_usage = _toy_usage(toy_events, sharing_bucket_seconds)
    transitions, episodes = _dominance_transitions(object_events, sharing_bucket_seconds, dominance_min_seconds)
    transitions.extend(_intensity_transitions(object_events, intensity_window_seconds, intensity_change_ratio))
    transitions.sort(key=lambda transition: transition.time)

    roles = {track.entity_id: track.role.value for track in person_tracks}
    cooperative_patterns = _cooperative_patterns(
        object_events,
        person_events,
        roles,
        bucket_seconds=cooperative_bucket_seconds,
        min_objects=cooperative_min_objects,
        min_persons=cooperative_min_persons,
        min_seconds=cooperative_min_seconds,
    )
    creativity = _creativity(object_events, innovation_baseline, exploration_offset)

    durations = [episode.duration for episode in episodes]
    attention = AttentionSummary(
        episodes=episodes,
        average_focus_seconds=float(np.mean(durations)) if durations else 0.0,
        longest_focus_seconds=max(durations) if durations else 0.0,
    )
    conflict = _conflict_indicators(toy_usage.switches)

    overall_score = min(
        100.0,
        min(len(toy_usage.toys) * 15, 40)
        + toy_usage.sharing_ratio * 30
        + min(len(toy_usage.switches) * 3, 15)
        + min(len(cooperative_patterns) * 8, 25)
        + creativity.diversity_score * 0.1,
    )

    logger.debug(
        "Play patterns: %d object events, %d toys, sharing=%.3f, %d cooperative windows",
        len(object_events),
        len(toy_usage.toys),
        toy_usage.sharing_ratio,
        len(cooperative_patterns),
    )
    return PlayPatternResult(
        toy_usage=toy_usage,
        activity_transitions=transitions,
        cooperative_patterns=cooperative_patterns,
        creativity_indicators=creativity,
        attention=attention,
        conflict=conflict,
        overall_score=overall_score,
    )


def _object_name(event: TimedEvent) -> str:
    payload = event.payload
    if not isinstance(payload, ObjectPayload):
        return "unknown"
    return payload.object_name.lower()


def _is_toy(name: str, confidence: float, keywords: list[str], confidence_threshold: float) -> bool:
    return any(keyword in name for keyword in keywords) or confidence > confidence_threshold


def _toy_usage(toy_events: list[TimedEvent], bucket_seconds: float) -> ToyUsageSummary:
    if not toy_events:
        return ToyUsageSummary()

    by_name: dict[str, list[float]] = {}
    for event in toy_events:
        by_name.setdefault(_object_name(event), []).append(event.time)

    toys = {
        name: ToyUsage(
            name=name,
            first_seen=times[0],
            last_seen=times[-1],
            event_count=len(times),
            duration=max(times[-1] - times[0], len(times) * MIN_EVENT_SECONDS),
        )
        for name, times in by_name.items()
    }

    grouped = group_by_bucket(toy_events, bucket_seconds, lambda event: event.time)
    shared_buckets = sum(
        1 for events in grouped.values() if len({_object_name(event) for event in events}) >= 2
    )

    switches = [
        ToySwitch(time=current.time, from_toy=_object_name(previous), to_toy=_object_name(current))
        for previous, current in zip(toy_events, toy_events[1:])
        if _object_name(previous) != _object_name(current)
        and current.time - previous.time < TOY_SWITCH_WINDOW_SECONDS
    ]

    return ToyUsageSummary(
        toys=toys,
        sharing_ratio=safe_ratio(shared_buckets, len(grouped)),
        switches=switches,
        total_play_seconds=sum(usage.duration for usage in toys.values()),
    )


def _dominance_transitions(
    object_events: list[TimedEvent],
    bucket_seconds: float,
    dominance_min_seconds: float,
) -> tuple[list[ActivityTransition], list[FocusEpisode]]:
    """Follow the most-detected object per bucket and log sustained changes."""

    grouped = group_by_bucket(object_events, bucket_seconds, lambda event: event.time)
    transitions: list[ActivityTransition] = []
    episodes: list[FocusEpisode] = []
    current_name: str | None = None
    current_start = 0.0

    for index in sorted(grouped):
        counts = Counter(_object_name(event) for event in grouped[index])
        dominant = min(counts, key=lambda name: (-counts[name], name))
        bucket_start = index * bucket_seconds
        if dominant == current_name:
            continue

        if current_name is not None:
            episodes.append(FocusEpisode(object_name=current_name, start=current_start, end=bucket_start))
            if bucket_start - current_start >= dominance_min_seconds:
                transitions.append(
                    ActivityTransition(
                        time=bucket_start,
                        kind="object_introduction",
                        description=f"Play moved from {current_name} to {dominant}",
                        object_name=dominant,
                    )
                )
        current_name = dominant
        current_start = bucket_start

    if current_name is not None:
        episodes.append(
            FocusEpisode(object_name=current_name, start=current_start, end=(max(grouped) + 1) * bucket_seconds)
        )

    return transitions, episodes


def _intensity_transitions(
    object_events: list[TimedEvent],
    window_seconds: float,
    change_ratio: float,
) -> list[ActivityTransition]:
    grouped = group_by_bucket(object_events, window_seconds, lambda event: event.time)
    counts = {index: len(events) for index, events in grouped.items()}
    transitions: list[ActivityTransition] = []

    last = max(counts)
    for index in sorted(counts):
        if index == last:
            continue
        previous = counts[index]
        change = (counts.get(index + 1, 0) - previous) / previous
        if change >= change_ratio:
            kind, verb = "intensity_increase", "rose"
        elif change <= -change_ratio:
            kind, verb = "intensity_decrease", "dropped"
        else:
            continue
        transitions.append(
            ActivityTransition(
                time=(index + 1) * window_seconds,
                kind=kind,
                description=f"Play activity {verb} by {abs(change) * 100:.0f}%",
                change_ratio=change,
            )
        )

    return transitions


def _cooperative_patterns(
    object_events: list[TimedEvent],
    person_events: list[TimedEvent],
    roles: dict[str, str],
    *,
    bucket_seconds: float,
    min_objects: int,
    min_persons: int,
    min_seconds: float,
) -> list[CooperativePattern]:
    object_buckets = group_by_bucket(object_events, bucket_seconds, lambda event: event.time)
    person_buckets = group_by_bucket(person_events, bucket_seconds, lambda event: event.time)
    cooperative = [
        index
        for index, events in object_buckets.items()
        if len(events) >= min_objects and len(person_buckets.get(index, [])) >= min_persons
    ]

    patterns: list[CooperativePattern] = []
    for run in contiguous_runs(cooperative):
        if len(run) * bucket_seconds >= min_seconds:
            participants = sorted(
                {
                    event.payload.entity_id
                    for bucket in run
                    for event in person_buckets.get(bucket, [])
                    if isinstance(event.payload, PersonPayload)
                }
            )
            patterns.append(
                CooperativePattern(
                    start=run[0] * bucket_seconds,
                    end=(run[-1] + 1) * bucket_seconds,
                    duration=len(run) * bucket_seconds,
                    participants=participants,
                    roles=sorted({roles.get(entity_id, "unknown") for entity_id in participants}),
                )
            )

    return patterns


def _creativity(
    object_events: list[TimedEvent],
    innovation_baseline: int,
    exploration_offset: float,
) -> CreativityIndicators:
    unique_objects = len({_object_name(event) for event in object_events})
    total_events = len(object_events)
    confidences = [event.confidence for event in object_events if event.confidence_reported]
    if not confidences:
        confidences = [event.confidence for event in object_events]

    return CreativityIndicators(
        diversity_score=min(100.0, 100 * unique_objects / max(total_events / 10, 1)),
        innovation_events=max(0, unique_objects - innovation_baseline),
        exploration_ratio=min(1.0, float(np.mean(confidences)) + exploration_offset),
        unique_objects=unique_objects,
        total_events=total_events,
    )


def _conflict_indicators(switches: list[ToySwitch]) -> ConflictIndicators:
    """Count quick back-and-forth switches between the same two toys."""

    contested = sum(
        1
        for first, second in zip(switches, switches[1:])
        if first.to_toy == second.from_toy
        and second.to_toy == first.from_toy
        and second.time - first.time <= CONTESTED_SWITCH_SECONDS
    )
    return ConflictIndicators(
        contested_switches=contested,
        conflict_frequency=safe_ratio(contested, len(switches)),
    )
