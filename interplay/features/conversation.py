from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from interplay.models import ConfidenceBin, TranscriptEntry
from interplay.windows import confidence_histogram, safe_ratio

logger = logging.getLogger(__name__)

QUESTION_OPENERS = frozenset(
    {
        "what",
        "why",
        "how",
        "where",
        "when",
        "who",
        "which",
        "can",
        "could",
        "would",
        "should",
        "do",
        "does",
        "did",
        "is",
        "are",
        "shall",
        "will",
    }
)


@dataclass(slots=True)
class Transition:
    time: float
    from_speaker: str
    to_speaker: str
    response_seconds: float


@dataclass(slots=True)
class Interruption:
    time: float
    speaker: str
    interrupted_speaker: str
    overlap_seconds: float


@dataclass(slots=True)
class TurnTakingStats:
    total_turns: int
    total_utterances: int
    average_turn_words: float
    average_turn_seconds: float
    transition_count: int
    transitions: list[Transition] = field(default_factory=list)
    turn_share: dict[str, float] = field(default_factory=dict)
    balance: float = 0.0
    responsiveness: float = 0.0
    interruption_count: int = 0
    interruptions: list[Interruption] = field(default_factory=list)
    initiations: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class SpeechTiming:
    average_response_seconds: float
    median_response_seconds: float
    max_response_seconds: float
    speech_span_seconds: float
    words_per_minute: float
    utterances_per_minute: dict[int, int] = field(default_factory=dict)


@dataclass(slots=True)
class SpeakerProfile:
    speaker: str
    utterance_count: int
    word_count: int
    turn_count: int
    average_confidence: float
    average_words_per_utterance: float
    first_time: float
    last_time: float
    question_count: int = 0


@dataclass(slots=True)
class ConversationResult:
    turn_taking: TurnTakingStats
    speech_timing: SpeechTiming
    speaker_profiles: dict[str, SpeakerProfile]
    word_confidence_distribution: list[ConfidenceBin]
    question_count: int = 0


def analyze_conversation(
    transcript: Sequence[TranscriptEntry],
    *,
    transition_gap_seconds: float = 30.0,
    initiation_silence_seconds: float = 5.0,
) -> ConversationResult:
    """Measure turn-taking, timing and per-speaker profiles from utterances.

    A transition is a speaker change whose start-to-start gap lies within
    ``transition_gap_seconds``. An interruption is a speaker change that starts
    before the previous utterance ended.
    """

    utterances = sorted(transcript, key=lambda entry: entry.time)
    if not utterances:
        return _empty_result()

    turns = _group_turns(utterances)
    turn_counts: dict[str, int] = {}
    for turn in turns:
        turn_counts[turn[0].speaker] = turn_counts.get(turn[0].speaker, 0) + 1

    transitions: list[Transition] = []
    interruptions: list[Interruption] = []
    speaker_changes = 0
    initiations: dict[str, int] = {utterances[0].speaker: 1}

    for previous, current in zip(utterances, utterances[1:]):
        previous_end = previous.end_time if previous.end_time is not None else previous.time
        if current.time - previous_end > initiation_silence_seconds:
            initiations[current.speaker] = initiations.get(current.speaker, 0) + 1

        if current.speaker == previous.speaker:
            continue

        speaker_changes += 1
        gap = current.time - previous.time
        if 0 <= gap <= transition_gap_seconds:
            transitions.append(
                Transition(
                    time=current.time,
                    from_speaker=previous.speaker,
                    to_speaker=current.speaker,
                    response_seconds=gap,
                )
            )
        if previous.end_time is not None and current.time < previous.end_time:
            interruptions.append(
                Interruption(
                    time=current.time,
                    speaker=current.speaker,
                    interrupted_speaker=previous.speaker,
                    overlap_seconds=previous.end_time - current.time,
                )
            )

    total_turns = len(turns)
    turn_share = {speaker: count / total_turns for speaker, count in turn_counts.items()}
    top_shares = sorted(turn_share.values(), reverse=True)[:2]
    balance = 1.0 - (top_shares[0] - top_shares[1]) if len(top_shares) == 2 else 0.0

    turn_taking = TurnTakingStats(
        total_turns=total_turns,
        total_utterances=len(utterances),
        average_turn_words=float(np.mean([sum(entry.word_count for entry in turn) for turn in turns])),
        average_turn_seconds=float(np.mean([_turn_seconds(turn) for turn in turns])),
        transition_count=len(transitions),
        transitions=transitions,
        turn_share=turn_share,
        balance=balance,
        responsiveness=safe_ratio(len(transitions), speaker_changes),
        interruption_count=len(interruptions),
        interruptions=interruptions,
        initiations=initiations,
    )

    result = ConversationResult(
        turn_taking=turn_taking,
        speech_timing=_speech_timing(utterances, transitions),
        speaker_profiles=_speaker_profiles(utterances, turn_counts),
        word_confidence_distribution=confidence_histogram(
            value for entry in utterances for value in entry.word_confidences
        ),
        question_count=sum(1 for entry in utterances if is_question(entry.text)),
    )
    logger.debug(
        "Conversation: %d utterances, %d turns, %d transitions, %d interruptions",
        len(utterances),
        total_turns,
        len(transitions),
        len(interruptions),
    )
    return result


def is_question(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    if stripped.endswith("?"):
        return True
    return stripped.split()[0].lower().strip(",.!") in QUESTION_OPENERS


def _group_turns(utterances: list[TranscriptEntry]) -> list[list[TranscriptEntry]]:
    turns: list[list[TranscriptEntry]] = []
    for entry in utterances:
        if turns and turns[-1][-1].speaker == entry.speaker:
            turns[-1].append(entry)
        else:
            turns.append([entry])
    return turns


def _turn_seconds(turn: list[TranscriptEntry]) -> float:
    last = turn[-1]
    end = last.end_time if last.end_time is not None else last.time
    return max(0.0, end - turn[0].time)


def _speech_timing(utterances: list[TranscriptEntry], transitions: list[Transition]) -> SpeechTiming:
    responses = [transition.response_seconds for transition in transitions]
    span_end = max(entry.end_time if entry.end_time is not None else entry.time for entry in utterances)
    span = max(0.0, span_end - utterances[0].time)
    total_words = sum(entry.word_count for entry in utterances)

    per_minute: dict[int, int] = {}
    for entry in utterances:
        minute = int(entry.time // 60)
        per_minute[minute] = per_minute.get(minute, 0) + 1

    return SpeechTiming(
        average_response_seconds=float(np.mean(responses)) if responses else 0.0,
        median_response_seconds=float(np.median(responses)) if responses else 0.0,
        max_response_seconds=max(responses) if responses else 0.0,
        speech_span_seconds=span,
        words_per_minute=safe_ratio(total_words, span / 60),
        utterances_per_minute=per_minute,
    )


def _speaker_profiles(
    utterances: list[TranscriptEntry],
    turn_counts: dict[str, int],
) -> dict[str, SpeakerProfile]:
    by_speaker: dict[str, list[TranscriptEntry]] = {}
    for entry in utterances:
        by_speaker.setdefault(entry.speaker, []).append(entry)

    profiles: dict[str, SpeakerProfile] = {}
    for speaker, entries in by_speaker.items():
        confidences = [value for entry in entries for value in entry.word_confidences]
        word_count = sum(entry.word_count for entry in entries)
        profiles[speaker] = SpeakerProfile(
            speaker=speaker,
            utterance_count=len(entries),
            word_count=word_count,
            turn_count=turn_counts.get(speaker, 0),
            average_confidence=float(np.mean(confidences)) if confidences else 0.0,
            average_words_per_utterance=word_count / len(entries),
            first_time=entries[0].time,
            last_time=entries[-1].time,
            question_count=sum(1 for entry in entries if is_question(entry.text)),
        )
    return profiles


def _empty_result() -> ConversationResult:
    return ConversationResult(
        turn_taking=TurnTakingStats(
            total_turns=0,
            total_utterances=0,
            average_turn_words=0.0,
            average_turn_seconds=0.0,
            transition_count=0,
        ),
        speech_timing=SpeechTiming(
            average_response_seconds=0.0,
            median_response_seconds=0.0,
            max_response_seconds=0.0,
            speech_span_seconds=0.0,
            words_per_minute=0.0,
        ),
        speaker_profiles={},
        word_confidence_distribution=confidence_histogram([]),
    )
