from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Modality(str, Enum):
    OBJECT = "object"
    PERSON = "person"
    FACE = "face"
    SPEECH = "speech"
    SHOT = "shot"


class Role(str, Enum):
    PARENT = "parent"
    CHILD = "child"
    UNKNOWN = "unknown"


class DataQualityGrade(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @property
    def rank(self) -> int:
        return _GRADE_RANKS[self]

    @classmethod
    def from_rank(cls, average_rank: float) -> DataQualityGrade:
        if average_rank >= 3.5:
            return cls.EXCELLENT
        if average_rank >= 2.5:
            return cls.GOOD
        if average_rank >= 1.5:
            return cls.FAIR
        return cls.POOR


_GRADE_RANKS = {
    DataQualityGrade.EXCELLENT: 4,
    DataQualityGrade.GOOD: 3,
    DataQualityGrade.FAIR: 2,
    DataQualityGrade.POOR: 1,
}


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Normalized [0, 1] box. Upstream does not guarantee left < right or top < bottom."""

    left: float = 0.0
    top: float = 0.0
    right: float = 1.0
    bottom: float = 1.0

    @property
    def center(self) -> tuple[float, float]:
        return ((self.left + self.right) / 2, (self.top + self.bottom) / 2)

    @property
    def size(self) -> float:
        return max(0.0, self.right - self.left) * max(0.0, self.bottom - self.top)


@dataclass(frozen=True, slots=True)
class ObjectPayload:
    entity_id: str
    object_name: str
    box: BoundingBox


@dataclass(frozen=True, slots=True)
class PersonPayload:
    entity_id: str
    box: BoundingBox


@dataclass(frozen=True, slots=True)
class FacePayload:
    entity_id: str
    box: BoundingBox


@dataclass(frozen=True, slots=True)
class SpeechPayload:
    speaker: str
    text: str
    word_count: int


@dataclass(frozen=True, slots=True)
class ShotPayload:
    duration: float


EventPayload = Union[ObjectPayload, PersonPayload, FacePayload, SpeechPayload, ShotPayload]


@dataclass(frozen=True, slots=True)
class TimedEvent:
    """One detection on the canonical seconds timeline.

    ``confidence_reported`` is False when the detector gave no confidence and
    ``confidence`` holds the builder default instead.
    """

    time: float
    modality: Modality
    confidence: float
    payload: EventPayload
    confidence_reported: bool = True

    @property
    def box(self) -> BoundingBox | None:
        return getattr(self.payload, "box", None)


@dataclass(frozen=True, slots=True)
class Track:
    """Time-ordered detections of one tracked entity."""

    entity_id: str
    modality: Modality
    events: tuple[TimedEvent, ...]
    role: Role = Role.UNKNOWN
    object_name: str | None = None

    def __post_init__(self) -> None:
        for previous, current in zip(self.events, self.events[1:]):
            if current.time < previous.time:
                raise ValueError(f"Track {self.entity_id} events must be ordered by time.")

    @property
    def start(self) -> float:
        return self.events[0].time if self.events else 0.0

    @property
    def end(self) -> float:
        return self.events[-1].time if self.events else 0.0

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def average_size(self) -> float:
        sizes = [event.box.size for event in self.events if event.box is not None]
        if not sizes:
            return 0.0
        return sum(sizes) / len(sizes)


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    """One utterance: contiguous words sharing a speaker tag."""

    speaker: str
    time: float
    text: str
    word_confidences: tuple[float, ...] = ()
    end_time: float | None = None

    @property
    def word_count(self) -> int:
        return len(self.text.split())


@dataclass(frozen=True, slots=True)
class TimeBucket:
    index: int
    start: float
    end: float
    events: tuple[TimedEvent, ...] = ()

    def of_modality(self, modality: Modality) -> list[TimedEvent]:
        return [event for event in self.events if event.modality is modality]


@dataclass(frozen=True, slots=True)
class TimelineEvent:
    """Merged-timeline entry with a short payload summary."""

    time: float
    modality: Modality
    kind: str
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EngagementPeriod:
    start: float
    end: float
    level: str


@dataclass(slots=True)
class CompositeScore:
    category: str
    raw_value: float
    weight: float
    normalized_value: float


@dataclass(slots=True)
class ConfidenceBin:
    lower: float
    upper: float
    count: int
