from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from interplay.config import Settings
from interplay.features.conversation import ConversationResult, analyze_conversation
from interplay.features.face_orientation import FaceOrientationResult, analyze_face_orientation
from interplay.features.play_patterns import PlayPatternResult, analyze_play_patterns
from interplay.features.proximity import ProximityResult, analyze_proximity
from interplay.ingest.roles import RolePolicy, SizeThresholdRolePolicy
from interplay.ingest.timeline_builder import TimelineBundle, TimelineStats, build_timeline
from interplay.scoring.aggregate import CompositeScoreSet, aggregate_scores, empty_score_set
from interplay.scoring.insights import Insights, generate_insights
from interplay.scoring.quality import analysis_depth, estimate_confidence

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_NO_SIGNAL = "no_signal"
NO_SIGNAL_SUMMARY = "No person, face, object or speech detections were available; the interaction could not be scored."


@dataclass(slots=True)
class AnalysisMetadata:
    processed_at: str
    confidence_score: float
    analysis_depth: str
    data_quality: str
    session_id: str | None = None


@dataclass(slots=True)
class AnalysisResult:
    """Complete output of one session analysis."""

    status: str
    scores: CompositeScoreSet
    insights: Insights
    metadata: AnalysisMetadata
    timeline_stats: TimelineStats
    proximity: ProximityResult
    face_orientation: FaceOrientationResult
    conversation: ConversationResult
    play_patterns: PlayPatternResult

    @property
    def is_empty(self) -> bool:
        return self.status == STATUS_NO_SIGNAL

    @property
    def overall_score(self) -> float:
        return self.scores.overall.normalized_value

    @property
    def category_scores(self) -> dict[str, float]:
        return self.scores.category_scores


def analyze_session(
    annotations: Mapping[str, Any] | None,
    *,
    settings: Settings | None = None,
    session_id: str | None = None,
    role_policy: RolePolicy | None = None,
    parallel: bool | None = None,
) -> AnalysisResult:
    """Run timeline fusion, modality analyzers, scoring and insights on one payload.

    When every modality is empty the ``no_signal`` result is returned instead
    of raising, with every score at the configured floor.
    """

    resolved = settings or Settings()
    bundle = build_timeline(
        annotations,
        role_policy=role_policy or SizeThresholdRolePolicy(threshold=resolved.timeline.parent_size_threshold),
        object_min_confidence=resolved.timeline.object_min_confidence,
        default_confidence=resolved.timeline.default_confidence,
    )

    run_parallel = resolved.scoring.parallel_analyzers if parallel is None else parallel
    proximity, face, conversation, play = _run_analyzers(bundle, resolved, parallel=run_parallel)

    if bundle.is_empty:
        logger.warning("Session %s has no usable detections; returning empty result.", session_id or "<unnamed>")
        return AnalysisResult(
            status=STATUS_NO_SIGNAL,
            scores=empty_score_set(
                weights=resolved.weights.model_dump(mode="python"),
                score_floor=resolved.scoring.score_floor,
                score_maximum=resolved.scoring.score_ceiling,
            ),
            insights=Insights(summary=NO_SIGNAL_SUMMARY),
            metadata=_metadata(bundle, session_id, confidence_score=0.0),
            timeline_stats=bundle.stats,
            proximity=proximity,
            face_orientation=face,
            conversation=conversation,
            play_patterns=play,
        )

    scores = aggregate_scores(
        proximity,
        face,
        conversation,
        play,
        grade=bundle.stats.overall_grade,
        weights=resolved.weights.model_dump(mode="python"),
        score_floor=resolved.scoring.score_floor,
        score_maximum=resolved.scoring.score_ceiling,
    )
    insights = generate_insights(
        scores,
        proximity=proximity,
        face=face,
        conversation=conversation,
        play=play,
        margin=resolved.scoring.insight_margin,
    )

    logger.info(
        "Session %s scored %.2f (%s, data quality %s)",
        session_id or "<unnamed>",
        scores.overall.normalized_value,
        scores.interaction_quality,
        bundle.stats.overall_grade.value,
    )
    return AnalysisResult(
        status=STATUS_OK,
        scores=scores,
        insights=insights,
        metadata=_metadata(bundle, session_id, confidence_score=estimate_confidence(bundle.stats)),
        timeline_stats=bundle.stats,
        proximity=proximity,
        face_orientation=face,
        conversation=conversation,
        play_patterns=play,
    )


def _run_analyzers(
    bundle: TimelineBundle,
    settings: Settings,
    *,
    parallel: bool,
) -> tuple[ProximityResult, FaceOrientationResult, ConversationResult, PlayPatternResult]:
    tasks = (
        lambda: analyze_proximity(bundle.person_tracks, **settings.proximity.model_dump(mode="python")),
        lambda: analyze_face_orientation(bundle.face_tracks, **settings.face.model_dump(mode="python")),
        lambda: analyze_conversation(bundle.transcript, **settings.conversation.model_dump(mode="python")),
        lambda: analyze_play_patterns(
            bundle.object_tracks,
            bundle.person_tracks,
            **settings.play.model_dump(mode="python"),
        ),
    )

    if not parallel:
        proximity, face, conversation, play = (task() for task in tasks)
        return proximity, face, conversation, play

    with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="analyzer") as executor:
        futures = [executor.submit(task) for task in tasks]
        proximity, face, conversation, play = (future.result() for future in futures)
    return proximity, face, conversation, play


def _metadata(bundle: TimelineBundle, session_id: str | None, *, confidence_score: float) -> AnalysisMetadata:
    return AnalysisMetadata(
        processed_at=datetime.now(timezone.utc).isoformat(),
        confidence_score=confidence_score,
        analysis_depth=analysis_depth(bundle.modality_count),
        data_quality=bundle.stats.overall_grade.value,
        session_id=session_id,
    )
