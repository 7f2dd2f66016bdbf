from __future__ import annotations

from interplay.features.conversation import analyze_conversation
from interplay.features.face_orientation import FaceOrientationResult
from interplay.features.play_patterns import analyze_play_patterns
from interplay.features.proximity import ProximityResult
from interplay.models import DataQualityGrade
from interplay.scoring.aggregate import DEFAULT_WEIGHTS, score_signals
from interplay.scoring.insights import generate_insights


def _raw_outputs(proximity_score: float = 0.2, mutual_gaze: float = 0.9) -> dict:
    return {
        "proximity": ProximityResult(
            proximity_score=proximity_score,
            movement_synchrony=0.0,
            activity_levels={},
            paired_bucket_count=4,
        ),
        "face": FaceOrientationResult(
            mutual_gaze_time=mutual_gaze,
            face_to_face_ratio=0.9,
            engagement_score=0.9,
            valid_bucket_count=4,
        ),
        "conversation": analyze_conversation([]),
        "play": analyze_play_patterns([]),
    }


def test_strengths_and_improvements_are_relative_to_session_average() -> None:
    scores = score_signals(
        {
            "physical_proximity": 0.2,
            "movement_synchrony": 0.2,
            "face_orientation": 0.9,
            "language_frequency": 0.5,
            "language_quality": 0.5,
            "play_diversity": 0.5,
            "attention_span": 0.5,
            "conflict_resolution": 0.5,
        },
        grade=DataQualityGrade.EXCELLENT,
    )

    insights = generate_insights(scores, **_raw_outputs())

    assert len(insights.strengths) == 1
    assert insights.strengths[0].startswith("Emotional connection")
    assert len(insights.areas_for_improvement) == 1
    assert insights.areas_for_improvement[0].startswith("Physical engagement")
    assert insights.recommendations == ["Sit closer to the child and play at their eye level."]
    assert "Strongest area: emotional connection." in insights.summary
    assert "Main focus area: physical engagement." in insights.summary


def test_uniformly_low_session_is_not_flagged() -> None:
    scores = score_signals(
        {name: 0.1 for name in DEFAULT_WEIGHTS},
        grade=DataQualityGrade.POOR,
    )

    insights = generate_insights(scores, **_raw_outputs())

    assert insights.strengths == []
    assert insights.areas_for_improvement == []
    assert insights.recommendations == []
    assert "close to the session average" in insights.summary
    assert insights.interaction_quality == "needs_improvement"


def test_communication_recommendation_prefers_questions_when_rare() -> None:
    scores = score_signals(
        {name: 1.0 for name in DEFAULT_WEIGHTS if not name.startswith("language_")},
        grade=DataQualityGrade.EXCELLENT,
    )

    insights = generate_insights(scores, **_raw_outputs(proximity_score=0.9))

    assert insights.areas_for_improvement[0].startswith("Communication quality")
    assert insights.recommendations[0] == "Ask open-ended questions about what the child is doing."


def test_key_findings_are_capped() -> None:
    scores = score_signals({}, grade=DataQualityGrade.FAIR)

    insights = generate_insights(scores, **_raw_outputs(), max_findings=1)

    assert insights.key_findings == ["Participants stayed within close range for 20% of the session."]
