from __future__ import annotations

from interplay.ingest.timeline_builder import TimelineStats
from interplay.models import DataQualityGrade

QUALITY_MULTIPLIERS = {
    DataQualityGrade.EXCELLENT: 1.0,
    DataQualityGrade.GOOD: 0.9,
    DataQualityGrade.FAIR: 0.75,
    DataQualityGrade.POOR: 0.5,
}

SCORE_CEILINGS = {
    DataQualityGrade.EXCELLENT: 10.0,
    DataQualityGrade.GOOD: 9.0,
    DataQualityGrade.FAIR: 7.5,
    DataQualityGrade.POOR: 5.0,
}


def quality_multiplier(grade: DataQualityGrade) -> float:
    return QUALITY_MULTIPLIERS[grade]


def score_ceiling(grade: DataQualityGrade, maximum: float = 10.0) -> float:
    """Highest publishable score under the given detection coverage."""

    return min(maximum, SCORE_CEILINGS[grade])


def estimate_confidence(stats: TimelineStats) -> float:
    """Coarse [0, 1] confidence in the analysis from how much signal was present."""

    confidence = 0.0
    if stats.participant_count > 0:
        confidence += 0.3
    if stats.total_duration > 60:
        confidence += 0.2
    if stats.object.event_count > 0:
        confidence += 0.2
    if stats.speech.event_count > 5:
        confidence += 0.2
    if stats.unique_word_count > 10:
        confidence += 0.1
    return round(min(1.0, confidence), 2)


def analysis_depth(modality_count: int) -> str:
    if modality_count >= 4:
        return "comprehensive"
    if modality_count >= 2:
        return "standard"
    if modality_count == 1:
        return "basic"
    return "none"
