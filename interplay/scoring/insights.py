from __future__ import annotations

from dataclasses import dataclass, field

from interplay.features.conversation import ConversationResult
from interplay.features.face_orientation import FaceOrientationResult
from interplay.features.play_patterns import PlayPatternResult
from interplay.features.proximity import ProximityResult
from interplay.scoring.aggregate import CompositeScoreSet

CATEGORY_LABELS = {
    "physical_engagement": "Physical engagement",
    "communication_quality": "Communication quality",
    "emotional_connection": "Emotional connection",
    "play_creativity": "Play and creativity",
}

STRENGTH_TEXT = {
    "physical_engagement": "Stays physically close and moves in step with the child.",
    "communication_quality": "Keeps a lively, balanced back-and-forth conversation.",
    "emotional_connection": "Frequently shares face-to-face attention with the child.",
    "play_creativity": "Supports varied, sustained and cooperative play.",
}

IMPROVEMENT_TEXT = {
    "physical_engagement": "Physical closeness and shared movement were limited.",
    "communication_quality": "Conversational exchanges were sparse or one-sided.",
    "emotional_connection": "Face-to-face moments were infrequent.",
    "play_creativity": "Play was narrow in range or rarely shared.",
}


@dataclass(slots=True)
class Insights:
    strengths: list[str] = field(default_factory=list)
    areas_for_improvement: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    key_findings: list[str] = field(default_factory=list)
    summary: str = ""
    interaction_quality: str = "needs_improvement"
    category_average: float = 0.0


def generate_insights(
    score_set: CompositeScoreSet,
    *,
    proximity: ProximityResult,
    face: FaceOrientationResult,
    conversation: ConversationResult,
    play: PlayPatternResult,
    margin: float = 0.5,
    max_findings: int = 5,
    max_recommendations: int = 4,
) -> Insights:
    """Turn scores and raw analyzer output into findings and recommendations.

    Strengths and improvement areas are judged against this session's own
    category average, never against fixed cut points.
    """

    scores = score_set.category_scores
    average = sum(scores.values()) / len(scores) if scores else 0.0

    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    strong = [name for name, value in ranked if value - average >= margin]
    weak = [name for name, value in reversed(ranked) if average - value >= margin]

    recommendations = [
        _recommendation(name, proximity=proximity, face=face, conversation=conversation, play=play)
        for name in weak
    ]

    return Insights(
        strengths=[f"{CATEGORY_LABELS[name]}: {STRENGTH_TEXT[name]}" for name in strong],
        areas_for_improvement=[f"{CATEGORY_LABELS[name]}: {IMPROVEMENT_TEXT[name]}" for name in weak],
        recommendations=recommendations[:max_recommendations],
        key_findings=_key_findings(proximity, face, conversation, play)[:max_findings],
        summary=_summary(score_set, strong, weak),
        interaction_quality=score_set.interaction_quality,
        category_average=round(average, 2),
    )


def _recommendation(
    category: str,
    *,
    proximity: ProximityResult,
    face: FaceOrientationResult,
    conversation: ConversationResult,
    play: PlayPatternResult,
) -> str:
    if category == "physical_engagement":
        if proximity.proximity_score < 0.5:
            return "Sit closer to the child and play at their eye level."
        return "Mirror the child's movements to build shared rhythm."
    if category == "communication_quality":
        if conversation.question_count < 5:
            return "Ask open-ended questions about what the child is doing."
        if conversation.turn_taking.responsiveness < 0.5:
            return "Respond promptly when the child speaks to keep the exchange going."
        return "Leave short pauses so the child has room to take a turn."
    if category == "emotional_connection":
        if face.mutual_gaze_time < 0.5:
            return "Position yourself face to face with the child during play."
        return "Reflect the child's expressions and name the feelings you notice."
    if play.toy_usage.sharing_ratio < 0.5:
        return "Introduce toys you can use together and take turns with them."
    return "Offer new materials and follow the child's lead in how to use them."


def _key_findings(
    proximity: ProximityResult,
    face: FaceOrientationResult,
    conversation: ConversationResult,
    play: PlayPatternResult,
) -> list[str]:
    findings: list[str] = []

    if proximity.paired_bucket_count:
        findings.append(f"Participants stayed within close range for {proximity.proximity_score:.0%} of the session.")
    synchronized = sum(1 for event in proximity.synchronized_events if event.kind == "synchronized")
    if synchronized:
        findings.append(f"{synchronized} moments of synchronized movement were observed.")
    if face.valid_bucket_count:
        findings.append(f"Faces were oriented toward each other in {face.face_to_face_ratio:.0%} of two-face moments.")

    turn_taking = conversation.turn_taking
    if turn_taking.transition_count:
        findings.append(
            f"{turn_taking.transition_count} conversational exchanges with a median response time of "
            f"{conversation.speech_timing.median_response_seconds:.1f}s."
        )
    if play.toy_usage.toys:
        findings.append(
            f"{len(play.toy_usage.toys)} toys were used; shared play appeared in "
            f"{play.toy_usage.sharing_ratio:.0%} of play windows."
        )
    if play.cooperative_patterns:
        longest = max(pattern.duration for pattern in play.cooperative_patterns)
        findings.append(
            f"{len(play.cooperative_patterns)} cooperative play periods, the longest lasting {longest:.0f}s."
        )

    return findings


def _summary(score_set: CompositeScoreSet, strong: list[str], weak: list[str]) -> str:
    parts = [
        f"Overall interaction quality is {score_set.interaction_quality.replace('_', ' ')} "
        f"({score_set.overall.normalized_value:.1f}/10, data quality {score_set.data_quality.value})."
    ]
    if strong:
        parts.append(f"Strongest area: {CATEGORY_LABELS[strong[0]].lower()}.")
    if weak:
        parts.append(f"Main focus area: {CATEGORY_LABELS[weak[0]].lower()}.")
    if not strong and not weak:
        parts.append("All areas scored close to the session average.")
    return " ".join(parts)
