from __future__ import annotations

import itertools
import logging
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from interplay.ingest.roles import RolePolicy, SizeThresholdRolePolicy
from interplay.ingest.time_offsets import normalize_time_offset
from interplay.models import (
    BoundingBox,
    ConfidenceBin,
    DataQualityGrade,
    FacePayload,
    Modality,
    ObjectPayload,
    PersonPayload,
    ShotPayload,
    SpeechPayload,
    TimeBucket,
    TimedEvent,
    TimelineEvent,
    Track,
    TranscriptEntry,
)
from interplay.windows import build_buckets, confidence_histogram

logger = logging.getLogger(__name__)

SPEECH_SUMMARY_CHARS = 50


@dataclass(slots=True)
class ModalityStats:
    entity_count: int
    event_count: int
    grade: DataQualityGrade
    confidence_distribution: list[ConfidenceBin]


@dataclass(slots=True)
class TimelineStats:
    """Counts and quality grades used later for confidence weighting."""

    person: ModalityStats
    face: ModalityStats
    object: ModalityStats
    speech: ModalityStats
    shot_change_count: int
    total_duration: float
    participant_count: int
    average_object_confidence: float
    unique_word_count: int
    overall_grade: DataQualityGrade


@dataclass(slots=True)
class TimelineBundle:
    """Immutable builder output shared by every modality analyzer."""

    person_tracks: list[Track]
    face_tracks: list[Track]
    object_tracks: list[Track]
    transcript: list[TranscriptEntry]
    speech_events: list[TimedEvent]
    shot_changes: list[TimedEvent]
    timeline: list[TimelineEvent]
    stats: TimelineStats

    @property
    def modality_count(self) -> int:
        return sum(
            1
            for present in (self.person_tracks, self.face_tracks, self.object_tracks, self.transcript)
            if present
        )

    @property
    def is_empty(self) -> bool:
        return self.modality_count == 0

    def all_events(self) -> list[TimedEvent]:
        events = [
            event
            for track in itertools.chain(self.person_tracks, self.face_tracks, self.object_tracks)
            for event in track.events
        ]
        events.extend(self.speech_events)
        events.extend(self.shot_changes)
        events.sort(key=lambda event: event.time)
        return events

    def bucketize(self, width_seconds: float) -> list[TimeBucket]:
        return build_buckets(self.all_events(), width_seconds)


def build_timeline(
    annotations: Mapping[str, Any] | None,
    *,
    role_policy: RolePolicy | None = None,
    object_min_confidence: float = 0.1,
    default_confidence: float = 0.5,
) -> TimelineBundle:
    """Flatten raw per-modality annotation arrays into tracks, a merged timeline and stats.

    Missing or malformed modality arrays are treated as empty.
    """

    payload = annotations if isinstance(annotations, Mapping) else {}
    policy = role_policy or SizeThresholdRolePolicy()

    person_tracks = [
        _with_role(track, policy)
        for track in _build_visual_tracks(
            payload.get("personDetection"),
            Modality.PERSON,
            min_confidence=None,
            default_confidence=default_confidence,
        )
    ]
    face_tracks = _build_visual_tracks(
        payload.get("faceDetection"),
        Modality.FACE,
        min_confidence=None,
        default_confidence=default_confidence,
    )
    object_tracks = _build_visual_tracks(
        payload.get("objectTracking"),
        Modality.OBJECT,
        min_confidence=object_min_confidence,
        default_confidence=default_confidence,
    )
    transcript = _build_transcript(payload.get("speechTranscription"))
    speech_events = [_speech_event(entry, default_confidence) for entry in transcript]
    shot_changes = _build_shot_changes(payload.get("shotChanges"), default_confidence)

    timeline = _merge_timeline(person_tracks, face_tracks, object_tracks, speech_events, shot_changes)
    stats = _summarize(person_tracks, face_tracks, object_tracks, transcript, speech_events, shot_changes)

    logger.info(
        "Built timeline: %d person, %d face, %d object tracks, %d utterances (quality=%s)",
        len(person_tracks),
        len(face_tracks),
        len(object_tracks),
        len(transcript),
        stats.overall_grade.value,
    )

    return TimelineBundle(
        person_tracks=person_tracks,
        face_tracks=face_tracks,
        object_tracks=object_tracks,
        transcript=transcript,
        speech_events=speech_events,
        shot_changes=shot_changes,
        timeline=timeline,
        stats=stats,
    )


def _build_visual_tracks(
    raw_annotations: Any,
    modality: Modality,
    *,
    min_confidence: float | None,
    default_confidence: float,
) -> list[Track]:
    tracks: list[Track] = []
    for index, raw in enumerate(_as_list(raw_annotations)):
        annotation = _as_mapping(raw)
        entity = _as_mapping(annotation.get("entity"))
        entity_id = f"{modality.value}_{index}"
        object_name = None
        if modality is Modality.OBJECT:
            object_name = str(entity.get("description") or annotation.get("category") or "").strip() or "unknown"
        annotation_confidence = _confidence(annotation.get("confidence"))

        events: list[TimedEvent] = []
        for frame, track_confidence in _iter_frames(annotation):
            box = _parse_box(frame.get("normalizedBoundingBox"))
            if box is None:
                continue

            reported = _first_confidence(frame.get("confidence"), track_confidence, annotation_confidence)
            confidence = reported if reported is not None else default_confidence
            if min_confidence is not None and confidence < min_confidence:
                continue

            events.append(
                TimedEvent(
                    time=normalize_time_offset(frame.get("timeOffset")),
                    modality=modality,
                    confidence=confidence,
                    payload=_visual_payload(modality, entity_id, object_name, box),
                    confidence_reported=reported is not None,
                )
            )

        if not events:
            continue

        events.sort(key=lambda event: event.time)
        tracks.append(
            Track(
                entity_id=entity_id,
                modality=modality,
                events=tuple(events),
                object_name=object_name,
            )
        )

    return tracks


def _iter_frames(annotation: Mapping[str, Any]) -> Iterator[tuple[Mapping[str, Any], float | None]]:
    for raw_track in _as_list(annotation.get("tracks")):
        track = _as_mapping(raw_track)
        track_confidence = _confidence(track.get("confidence"))
        for frame in _as_list(track.get("timestampedObjects")):
            yield _as_mapping(frame), track_confidence

    # Object tracking results may carry frames directly on the annotation.
    for frame in _as_list(annotation.get("frames")):
        yield _as_mapping(frame), None


def _visual_payload(
    modality: Modality,
    entity_id: str,
    object_name: str | None,
    box: BoundingBox,
) -> ObjectPayload | PersonPayload | FacePayload:
    if modality is Modality.OBJECT:
        return ObjectPayload(entity_id=entity_id, object_name=object_name or "unknown", box=box)
    if modality is Modality.PERSON:
        return PersonPayload(entity_id=entity_id, box=box)
    return FacePayload(entity_id=entity_id, box=box)


def _with_role(track: Track, policy: RolePolicy) -> Track:
    return Track(
        entity_id=track.entity_id,
        modality=track.modality,
        events=track.events,
        role=policy.infer(track),
        object_name=track.object_name,
    )


def _build_transcript(raw_transcriptions: Any) -> list[TranscriptEntry]:
    entries: list[TranscriptEntry] = []
    for raw in _as_list(raw_transcriptions):
        alternatives = _as_list(_as_mapping(raw).get("alternatives"))
        if not alternatives:
            continue

        alternative = _as_mapping(alternatives[0])
        words = [_as_mapping(word) for word in _as_list(alternative.get("words"))]
        if not words:
            text = str(alternative.get("transcript") or "").strip()
            if text:
                entries.append(TranscriptEntry(speaker="speaker_0", time=0.0, text=text, end_time=0.0))
            continue

        for speaker_tag, grouped in itertools.groupby(words, key=_speaker_tag):
            group = list(grouped)
            tokens = [str(word.get("word") or "").strip() for word in group]
            text = " ".join(token for token in tokens if token)
            if not text:
                continue

            confidences = tuple(
                value
                for value in (_confidence(word.get("confidence")) for word in group)
                if value is not None
            )
            entries.append(
                TranscriptEntry(
                    speaker=f"speaker_{speaker_tag}",
                    time=normalize_time_offset(group[0].get("startTime")),
                    text=text,
                    word_confidences=confidences,
                    end_time=normalize_time_offset(group[-1].get("endTime")),
                )
            )

    entries.sort(key=lambda entry: entry.time)
    return entries


def _speech_event(entry: TranscriptEntry, default_confidence: float) -> TimedEvent:
    confidences = entry.word_confidences
    return TimedEvent(
        time=entry.time,
        modality=Modality.SPEECH,
        confidence=sum(confidences) / len(confidences) if confidences else default_confidence,
        payload=SpeechPayload(speaker=entry.speaker, text=entry.text, word_count=entry.word_count),
        confidence_reported=bool(confidences),
    )


def _build_shot_changes(raw_shots: Any, default_confidence: float) -> list[TimedEvent]:
    shots: list[TimedEvent] = []
    for raw in _as_list(raw_shots):
        shot = _as_mapping(raw)
        if not shot:
            continue
        start = normalize_time_offset(shot.get("startTimeOffset"))
        end = normalize_time_offset(shot.get("endTimeOffset"))
        shots.append(
            TimedEvent(
                time=start,
                modality=Modality.SHOT,
                confidence=default_confidence,
                payload=ShotPayload(duration=max(0.0, end - start)),
                confidence_reported=False,
            )
        )

    shots.sort(key=lambda event: event.time)
    return shots


def _merge_timeline(
    person_tracks: list[Track],
    face_tracks: list[Track],
    object_tracks: list[Track],
    speech_events: list[TimedEvent],
    shot_changes: list[TimedEvent],
) -> list[TimelineEvent]:
    timeline: list[TimelineEvent] = []

    for track in person_tracks:
        for event in track.events:
            timeline.append(
                TimelineEvent(
                    time=event.time,
                    modality=Modality.PERSON,
                    kind="person_detected",
                    summary={
                        "entity_id": track.entity_id,
                        "role": track.role.value,
                        "confidence": round(event.confidence, 3),
                        "size": round(event.box.size, 4) if event.box else 0.0,
                    },
                )
            )

    for track in face_tracks:
        for event in track.events:
            timeline.append(
                TimelineEvent(
                    time=event.time,
                    modality=Modality.FACE,
                    kind="face_detected",
                    summary={
                        "entity_id": track.entity_id,
                        "face_size": round(event.box.size, 4) if event.box else 0.0,
                    },
                )
            )

    for track in object_tracks:
        for event in track.events:
            timeline.append(
                TimelineEvent(
                    time=event.time,
                    modality=Modality.OBJECT,
                    kind="object_detected",
                    summary={
                        "entity_id": track.entity_id,
                        "object_name": track.object_name,
                        "confidence": round(event.confidence, 3),
                    },
                )
            )

    for event in speech_events:
        payload = event.payload
        if not isinstance(payload, SpeechPayload):
            continue
        text = payload.text
        if len(text) > SPEECH_SUMMARY_CHARS:
            text = f"{text[:SPEECH_SUMMARY_CHARS]}..."
        timeline.append(
            TimelineEvent(
                time=event.time,
                modality=Modality.SPEECH,
                kind="speech_start",
                summary={"speaker": payload.speaker, "text": text},
            )
        )

    for event in shot_changes:
        payload = event.payload
        if not isinstance(payload, ShotPayload):
            continue
        timeline.append(
            TimelineEvent(
                time=event.time,
                modality=Modality.SHOT,
                kind="scene_change",
                summary={"duration": round(payload.duration, 3)},
            )
        )

    timeline.sort(key=lambda item: item.time)
    return timeline


def _summarize(
    person_tracks: list[Track],
    face_tracks: list[Track],
    object_tracks: list[Track],
    transcript: list[TranscriptEntry],
    speech_events: list[TimedEvent],
    shot_changes: list[TimedEvent],
) -> TimelineStats:
    person_events = [event for track in person_tracks for event in track.events]
    face_events = [event for track in face_tracks for event in track.events]
    object_events = [event for track in object_tracks for event in track.events]
    distinct_objects = len({track.object_name for track in object_tracks})

    person = ModalityStats(
        entity_count=len(person_tracks),
        event_count=len(person_events),
        grade=grade_person_coverage(len(person_tracks), len(person_events)),
        confidence_distribution=_reported_histogram(person_events),
    )
    face = ModalityStats(
        entity_count=len(face_tracks),
        event_count=len(face_events),
        grade=grade_face_coverage(len(face_tracks), len(face_events)),
        confidence_distribution=_reported_histogram(face_events),
    )
    objects = ModalityStats(
        entity_count=distinct_objects,
        event_count=len(object_events),
        grade=grade_object_coverage(distinct_objects, len(object_events)),
        confidence_distribution=_reported_histogram(object_events),
    )
    speech = ModalityStats(
        entity_count=len({entry.speaker for entry in transcript}),
        event_count=len(transcript),
        grade=grade_speech_coverage(len(transcript)),
        confidence_distribution=confidence_histogram(
            value for entry in transcript for value in entry.word_confidences
        ),
    )

    all_times = [
        event.time
        for event in itertools.chain(person_events, face_events, object_events, speech_events, shot_changes)
    ]
    reported_object_confidences = [event.confidence for event in object_events if event.confidence_reported]
    unique_words = {word.lower() for entry in transcript for word in entry.text.split()}
    average_rank = sum(stats.grade.rank for stats in (person, face, objects, speech)) / 4

    return TimelineStats(
        person=person,
        face=face,
        object=objects,
        speech=speech,
        shot_change_count=len(shot_changes),
        total_duration=(max(all_times) - min(all_times)) if all_times else 0.0,
        participant_count=len(person_tracks),
        average_object_confidence=(
            sum(reported_object_confidences) / len(reported_object_confidences)
            if reported_object_confidences
            else 0.0
        ),
        unique_word_count=len(unique_words),
        overall_grade=DataQualityGrade.from_rank(average_rank),
    )


def grade_person_coverage(person_count: int, event_count: int) -> DataQualityGrade:
    if person_count >= 2 and event_count > 100:
        return DataQualityGrade.EXCELLENT
    if person_count >= 1 and event_count > 50:
        return DataQualityGrade.GOOD
    if person_count >= 1 and event_count > 20:
        return DataQualityGrade.FAIR
    return DataQualityGrade.POOR


def grade_face_coverage(face_count: int, event_count: int) -> DataQualityGrade:
    if face_count >= 2 and event_count > 100:
        return DataQualityGrade.EXCELLENT
    if face_count >= 1 and event_count > 50:
        return DataQualityGrade.GOOD
    if face_count >= 1 and event_count > 10:
        return DataQualityGrade.FAIR
    return DataQualityGrade.POOR


def grade_object_coverage(object_count: int, event_count: int) -> DataQualityGrade:
    if object_count > 5 and event_count > 50:
        return DataQualityGrade.EXCELLENT
    if object_count > 3 and event_count > 20:
        return DataQualityGrade.GOOD
    if object_count > 1 and event_count > 10:
        return DataQualityGrade.FAIR
    return DataQualityGrade.POOR


def grade_speech_coverage(utterance_count: int) -> DataQualityGrade:
    if utterance_count > 20:
        return DataQualityGrade.EXCELLENT
    if utterance_count > 10:
        return DataQualityGrade.GOOD
    if utterance_count > 5:
        return DataQualityGrade.FAIR
    return DataQualityGrade.POOR


def _reported_histogram(events: list[TimedEvent]) -> list[ConfidenceBin]:
    return confidence_histogram(event.confidence for event in events if event.confidence_reported)


def _parse_box(raw: Any) -> BoundingBox | None:
    if not isinstance(raw, Mapping):
        return None
    return BoundingBox(
        left=_coordinate(raw.get("left"), 0.0),
        top=_coordinate(raw.get("top"), 0.0),
        right=_coordinate(raw.get("right"), 1.0),
        bottom=_coordinate(raw.get("bottom"), 1.0),
    )


def _coordinate(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    return float(value) if math.isfinite(float(value)) else default


def _confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(float(value)):
        return None
    return max(0.0, min(1.0, float(value)))


def _first_confidence(*candidates: Any) -> float | None:
    for candidate in candidates:
        value = _confidence(candidate)
        if value is not None:
            return value
    return None


def _speaker_tag(word: Mapping[str, Any]) -> int:
    raw = word.get("speakerTag")
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and math.isfinite(raw):
        return int(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return 0


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
