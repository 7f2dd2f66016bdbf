from __future__ import annotations

import pytest

from annotation_factories import annotation, box_at, frame, words
from interplay.ingest.timeline_builder import (
    build_timeline,
    grade_object_coverage,
    grade_person_coverage,
    grade_speech_coverage,
)
from interplay.models import DataQualityGrade, Modality, Role, SpeechPayload


def _person(count: int, x: float, size: float) -> dict:
    side = size ** 0.5
    return annotation([frame(float(t), box_at(x, 0.5, side, side)) for t in range(count)])


def test_build_timeline_treats_missing_modalities_as_empty() -> None:
    bundle = build_timeline({})

    assert bundle.is_empty
    assert bundle.timeline == []
    assert bundle.stats.overall_grade is DataQualityGrade.POOR
    assert bundle.stats.person.event_count == 0
    assert bundle.stats.total_duration == 0.0


@pytest.mark.parametrize("payload", [None, [], "not a payload", {"personDetection": "broken"}])
def test_build_timeline_tolerates_malformed_payloads(payload) -> None:
    bundle = build_timeline(payload)

    assert bundle.is_empty


def test_person_frames_are_kept_regardless_of_confidence_and_sorted() -> None:
    payload = {
        "personDetection": [
            annotation(
                [
                    frame(3.0, box_at(0.5, 0.5), confidence=0.01),
                    frame(1.0, box_at(0.4, 0.5)),
                    {"timeOffset": "2s"},
                ]
            )
        ]
    }

    bundle = build_timeline(payload)

    track = bundle.person_tracks[0]
    assert [event.time for event in track.events] == [1.0, 3.0]
    assert track.events[0].confidence == 0.5
    assert track.events[0].confidence_reported is False
    assert track.events[1].confidence == pytest.approx(0.01)
    assert track.events[1].confidence_reported is True


def test_object_frames_below_minimum_confidence_are_dropped() -> None:
    payload = {
        "objectTracking": [
            annotation(
                [
                    frame(0.0, box_at(0.5, 0.5), confidence=0.05),
                    frame(1.0, box_at(0.5, 0.5), confidence=0.1),
                    frame(2.0, box_at(0.5, 0.5)),
                ],
                description="Ball",
            )
        ]
    }

    bundle = build_timeline(payload)

    track = bundle.object_tracks[0]
    assert track.object_name == "Ball"
    assert [event.time for event in track.events] == [1.0, 2.0]


def test_object_annotations_with_frames_and_annotation_confidence() -> None:
    payload = {
        "objectTracking": [
            {
                "entity": {"entityId": "/m/018xm", "description": "ball"},
                "confidence": 0.8,
                "frames": [{"timeOffset": {"seconds": 4}, "normalizedBoundingBox": {"left": 0.1}}],
            },
            {"category": "blocks", "frames": [{"timeOffset": "1s", "normalizedBoundingBox": {}}]},
        ]
    }

    bundle = build_timeline(payload)

    ball, blocks = bundle.object_tracks
    assert ball.events[0].confidence == pytest.approx(0.8)
    assert ball.events[0].box.left == pytest.approx(0.1)
    assert ball.events[0].box.right == 1.0
    assert blocks.object_name == "blocks"
    assert blocks.entity_id == "object_1"


def test_speech_words_group_by_contiguous_speaker_tag() -> None:
    payload = {
        "speechTranscription": [
            words(
                ("hello", 1, 0.0, 0.5),
                ("there", 1, 0.5, 1.0),
                ("hi", 2, 2.0, 2.4),
                ("again", 1, 4.0, 4.6),
            ),
            {"alternatives": [{"transcript": "   ", "words": [{"word": " ", "speakerTag": 1}]}]},
        ]
    }

    bundle = build_timeline(payload)

    assert [(entry.speaker, entry.text) for entry in bundle.transcript] == [
        ("speaker_1", "hello there"),
        ("speaker_2", "hi"),
        ("speaker_1", "again"),
    ]
    assert bundle.transcript[0].end_time == pytest.approx(1.0)
    assert bundle.transcript[0].word_confidences == (0.9, 0.9)
    assert bundle.stats.speech.entity_count == 2


def test_merged_timeline_is_sorted_and_truncates_speech_summaries() -> None:
    long_text = " ".join(["word"] * 20)
    payload = {
        "personDetection": [annotation([frame(5.0, box_at(0.5, 0.5))])],
        "faceDetection": [annotation([frame(1.0, box_at(0.5, 0.3, 0.1, 0.1))])],
        "speechTranscription": [{"alternatives": [{"words": [{"word": long_text, "startTime": "3s", "speakerTag": 1}]}]}],
        "shotChanges": [{"startTimeOffset": "2s", "endTimeOffset": "6.5s"}],
    }

    bundle = build_timeline(payload)

    assert [event.kind for event in bundle.timeline] == [
        "face_detected",
        "scene_change",
        "speech_start",
        "person_detected",
    ]
    speech = bundle.timeline[2]
    assert speech.summary["text"].endswith("...")
    assert len(speech.summary["text"]) == 53
    assert bundle.timeline[1].summary["duration"] == pytest.approx(4.5)
    assert isinstance(bundle.speech_events[0].payload, SpeechPayload)


def test_role_policy_labels_large_person_tracks_as_parent() -> None:
    payload = {"personDetection": [_person(3, 0.3, 0.25), _person(3, 0.7, 0.05)]}

    bundle = build_timeline(payload)

    assert [track.role for track in bundle.person_tracks] == [Role.PARENT, Role.CHILD]


def test_custom_role_policy_is_used() -> None:
    class AlwaysChild:
        def infer(self, track):
            return Role.CHILD

    payload = {"personDetection": [_person(3, 0.3, 0.5)]}

    bundle = build_timeline(payload, role_policy=AlwaysChild())

    assert bundle.person_tracks[0].role is Role.CHILD


def test_stats_report_counts_duration_and_confidence_distribution() -> None:
    payload = {
        "personDetection": [_person(60, 0.3, 0.2), _person(50, 0.7, 0.05)],
        "objectTracking": [
            annotation([frame(float(t), box_at(0.5, 0.5), confidence=0.95) for t in range(10)], description="ball"),
        ],
    }

    bundle = build_timeline(payload)
    stats = bundle.stats

    assert stats.participant_count == 2
    assert stats.person.event_count == 110
    assert stats.person.grade is DataQualityGrade.EXCELLENT
    assert stats.object.grade is DataQualityGrade.POOR
    assert stats.total_duration == pytest.approx(59.0)
    assert stats.average_object_confidence == pytest.approx(0.95)
    assert [row.count for row in stats.object.confidence_distribution] == [0, 0, 0, 0, 10]
    assert stats.person.confidence_distribution[-1].count == 0
    assert bundle.modality_count == 2


def test_bucketize_merges_all_modalities() -> None:
    payload = {
        "personDetection": [annotation([frame(1.0, box_at(0.5, 0.5)), frame(12.0, box_at(0.5, 0.5))])],
        "objectTracking": [annotation([frame(2.0, box_at(0.5, 0.5), confidence=0.9)], description="ball")],
    }

    buckets = build_timeline(payload).bucketize(5.0)

    assert [bucket.start for bucket in buckets] == [0.0, 10.0]
    assert len(buckets[0].of_modality(Modality.PERSON)) == 1
    assert len(buckets[0].of_modality(Modality.OBJECT)) == 1
    assert [event.time for event in buckets[1].events] == [12.0]


@pytest.mark.parametrize(
    ("persons", "events", "expected"),
    [
        (2, 101, DataQualityGrade.EXCELLENT),
        (2, 100, DataQualityGrade.GOOD),
        (1, 51, DataQualityGrade.GOOD),
        (1, 21, DataQualityGrade.FAIR),
        (1, 20, DataQualityGrade.POOR),
        (0, 500, DataQualityGrade.POOR),
    ],
)
def test_grade_person_coverage_thresholds(persons: int, events: int, expected: DataQualityGrade) -> None:
    assert grade_person_coverage(persons, events) is expected


def test_grade_speech_and_object_thresholds() -> None:
    assert grade_speech_coverage(21) is DataQualityGrade.EXCELLENT
    assert grade_speech_coverage(6) is DataQualityGrade.FAIR
    assert grade_speech_coverage(5) is DataQualityGrade.POOR
    assert grade_object_coverage(6, 51) is DataQualityGrade.EXCELLENT
    assert grade_object_coverage(2, 11) is DataQualityGrade.FAIR


def test_overall_grade_from_average_rank() -> None:
    assert DataQualityGrade.from_rank(3.5) is DataQualityGrade.EXCELLENT
    assert DataQualityGrade.from_rank(2.5) is DataQualityGrade.GOOD
    assert DataQualityGrade.from_rank(1.75) is DataQualityGrade.FAIR
    assert DataQualityGrade.from_rank(1.25) is DataQualityGrade.POOR
