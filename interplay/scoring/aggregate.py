from __future__ import annotations

import logging
from dataclasses import dataclass

from interplay.features.conversation import ConversationResult
from interplay.features.face_orientation import FaceOrientationResult
from interplay.features.play_patterns import PlayPatternResult
from interplay.features.proximity import ProximityResult
from interplay.models import CompositeScore, DataQualityGrade
from interplay.scoring.quality import quality_multiplier, score_ceiling
from interplay.windows import clamp

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "physical_proximity": 0.15,
    "movement_synchrony": 0.10,
    "face_orientation": 0.15,
    "language_frequency": 0.15,
    "language_quality": 0.15,
    "play_diversity": 0.10,
    "attention_span": 0.10,
    "conflict_resolution": 0.10,
}

CATEGORY_SIGNALS = {
    "physical_engagement": ("physical_proximity", "movement_synchrony"),
    "communication_quality": ("language_frequency", "language_quality"),
    "emotional_connection": ("face_orientation",),
    "play_creativity": ("play_diversity", "attention_span", "conflict_resolution"),
}

OVERALL_CATEGORY = "overall_development"
FULL_TRANSITION_COUNT = 50
FULL_FOCUS_SECONDS = 60.0
SCORE_SCALE = 10.0


@dataclass(slots=True)
class CompositeScoreSet:
    """Weighted sub-signals, category scores and the overall score for one session."""

    signals: list[CompositeScore]
    categories: list[CompositeScore]
    overall: CompositeScore
    weights: dict[str, float]
    data_quality: DataQualityGrade
    quality_multiplier: float
    score_ceiling: float
    interaction_quality: str

    @property
    def category_scores(self) -> dict[str, float]:
        return {score.category: score.normalized_value for score in self.categories}

    def category(self, name: str) -> CompositeScore:
        for score in self.categories:
            if score.category == name:
                return score
        raise KeyError(name)


def resolve_weights(weights: dict[str, float] | None = None) -> dict[str, float]:
    """Merge overrides onto the default table and renormalize to a unit sum."""

    active_weights = {**DEFAULT_WEIGHTS, **{k: v for k, v in (weights or {}).items() if k in DEFAULT_WEIGHTS}}

    non_negative = {
        signal_name: max(0.0, raw_weight)
        for signal_name, raw_weight in active_weights.items()
    }
    total_weight = sum(non_negative.values())
    if total_weight == 0:
        logger.warning("All scoring weights are zero; falling back to default weights.")
        non_negative = dict(DEFAULT_WEIGHTS)
        total_weight = sum(non_negative.values())

    return {
        signal_name: weight / total_weight
        for signal_name, weight in non_negative.items()
    }


def extract_signals(
    proximity: ProximityResult,
    face: FaceOrientationResult,
    conversation: ConversationResult,
    play: PlayPatternResult,
) -> dict[str, float]:
    """Raw sub-signal values. Each is meant to lie in [0, 1] but is not clamped here."""

    turn_taking = conversation.turn_taking
    if turn_taking.total_turns > 0:
        interruption_rate = min(1.0, turn_taking.interruption_count / turn_taking.total_turns)
        language_quality = (
            0.4 * turn_taking.balance
            + 0.3 * turn_taking.responsiveness
            + 0.3 * (1.0 - interruption_rate)
        )
    else:
        language_quality = 0.0

    has_toys = bool(play.toy_usage.toys)

    return {
        "physical_proximity": proximity.proximity_score,
        "movement_synchrony": proximity.movement_synchrony,
        "face_orientation": face.engagement_score,
        "language_frequency": turn_taking.transition_count / FULL_TRANSITION_COUNT,
        "language_quality": language_quality,
        "play_diversity": play.creativity_indicators.diversity_score / 100,
        "attention_span": play.attention.average_focus_seconds / FULL_FOCUS_SECONDS,
        "conflict_resolution": (1.0 - play.conflict.conflict_frequency) if has_toys else 0.0,
    }


def aggregate_scores(
    proximity: ProximityResult,
    face: FaceOrientationResult,
    conversation: ConversationResult,
    play: PlayPatternResult,
    *,
    grade: DataQualityGrade,
    weights: dict[str, float] | None = None,
    score_floor: float = 1.0,
    score_maximum: float = 10.0,
) -> CompositeScoreSet:
    """Combine analyzer outputs into category and overall scores on the published scale."""

    return score_signals(
        extract_signals(proximity, face, conversation, play),
        grade=grade,
        weights=weights,
        score_floor=score_floor,
        score_maximum=score_maximum,
    )


def score_signals(
    raw_signals: dict[str, float],
    *,
    grade: DataQualityGrade,
    weights: dict[str, float] | None = None,
    score_floor: float = 1.0,
    score_maximum: float = 10.0,
) -> CompositeScoreSet:
    """Weight and scale raw sub-signals, then apply the data-quality adjustment.

    Published scores are multiplied by the grade's quality multiplier, capped at
    the grade's ceiling and clamped to ``[score_floor, score_maximum]``.
    """

    resolved_weights = resolve_weights(weights)
    multiplier = quality_multiplier(grade)
    ceiling = max(score_floor, score_ceiling(grade, maximum=score_maximum))

    signals = [
        CompositeScore(
            category=name,
            raw_value=raw_signals.get(name, 0.0),
            weight=weight,
            normalized_value=clamp(raw_signals.get(name, 0.0)),
        )
        for name, weight in resolved_weights.items()
    ]
    normalized = {signal.category: signal.normalized_value for signal in signals}

    def publish(raw_score: float) -> float:
        return round(clamp(raw_score * multiplier, score_floor, ceiling), 2)

    categories: list[CompositeScore] = []
    for category, members in CATEGORY_SIGNALS.items():
        category_weight = sum(resolved_weights[name] for name in members)
        if category_weight > 0:
            raw_score = SCORE_SCALE * sum(resolved_weights[name] * normalized[name] for name in members) / category_weight
        else:
            raw_score = 0.0
        categories.append(
            CompositeScore(
                category=category,
                raw_value=raw_score,
                weight=category_weight,
                normalized_value=publish(raw_score),
            )
        )

    overall_raw = SCORE_SCALE * sum(resolved_weights[name] * normalized[name] for name in resolved_weights)
    overall = CompositeScore(
        category=OVERALL_CATEGORY,
        raw_value=overall_raw,
        weight=1.0,
        normalized_value=publish(overall_raw),
    )

    logger.debug(
        "Aggregated scores: overall=%.2f (raw=%.2f, grade=%s, multiplier=%.2f, ceiling=%.1f)",
        overall.normalized_value,
        overall_raw,
        grade.value,
        multiplier,
        ceiling,
    )
    return CompositeScoreSet(
        signals=signals,
        categories=categories,
        overall=overall,
        weights=resolved_weights,
        data_quality=grade,
        quality_multiplier=multiplier,
        score_ceiling=ceiling,
        interaction_quality=interaction_quality_label(overall.normalized_value),
    )


def empty_score_set(
    *,
    weights: dict[str, float] | None = None,
    score_floor: float = 1.0,
    score_maximum: float = 10.0,
) -> CompositeScoreSet:
    """Score set for a session without any detections: every score at the floor."""

    return score_signals(
        {},
        grade=DataQualityGrade.POOR,
        weights=weights,
        score_floor=score_floor,
        score_maximum=score_maximum,
    )


def interaction_quality_label(score: float) -> str:
    if score >= 8:
        return "excellent"
    if score >= 6:
        return "good"
    if score >= 4:
        return "fair"
    return "needs_improvement"
