from __future__ import annotations

import pytest

from annotation_factories import object_track, person_track
from interplay.features.play_patterns import analyze_play_patterns


def test_single_object_never_counts_as_sharing() -> None:
    ball = object_track("object_0", "ball", [float(t) for t in range(61)])

    result = analyze_play_patterns([ball])

    assert result.toy_usage.sharing_ratio == 0.0
    usage = result.toy_usage.toys["ball"]
    assert usage.first_seen == 0.0
    assert usage.last_seen == 60.0
    assert usage.duration == pytest.approx(122.0)


def test_concurrent_toys_share_buckets() -> None:
    ball = object_track("object_0", "Ball", [0.0, 1.0, 5.0])
    doll = object_track("object_1", "doll", [0.5])

    result = analyze_play_patterns([ball, doll])

    assert result.toy_usage.sharing_ratio == pytest.approx(0.5)
    assert set(result.toy_usage.toys) == {"ball", "doll"}


def test_non_toy_low_confidence_objects_are_ignored_for_toy_usage() -> None:
    lamp = object_track("object_0", "lamp", [0.0, 1.0], confidence=0.5)
    cup = object_track("object_1", "cup", [2.0], confidence=0.9)

    result = analyze_play_patterns([lamp, cup])

    assert set(result.toy_usage.toys) == {"cup"}
    assert result.creativity_indicators.unique_objects == 2


def test_sparse_toy_duration_has_event_floor() -> None:
    blocks = object_track("object_0", "blocks", [10.0, 10.5, 11.0])

    result = analyze_play_patterns([blocks])

    assert result.toy_usage.toys["blocks"].duration == pytest.approx(6.0)


def test_object_introduction_requires_sustained_dominance() -> None:
    ball = object_track("object_0", "ball", [float(t) for t in range(0, 20)])
    doll = object_track("object_1", "doll", [float(t) for t in range(20, 25)])
    car = object_track("object_2", "car", [float(t) for t in range(25, 30)])

    result = analyze_play_patterns([ball, doll, car])

    introductions = [item for item in result.activity_transitions if item.kind == "object_introduction"]
    assert [(item.time, item.object_name) for item in introductions] == [(20.0, "doll")]
    assert [episode.object_name for episode in result.attention.episodes] == ["ball", "doll", "car"]
    assert result.attention.average_focus_seconds == pytest.approx(10.0)
    assert result.attention.longest_focus_seconds == pytest.approx(20.0)


def test_intensity_changes_between_windows_are_flagged() -> None:
    times = [float(t) for t in range(0, 30, 3)] + [float(t) for t in range(30, 60)] + [75.0]
    ball = object_track("object_0", "ball", times)

    result = analyze_play_patterns([ball])

    kinds = [(item.time, item.kind) for item in result.activity_transitions if item.kind.startswith("intensity")]
    assert kinds == [(30.0, "intensity_increase"), (60.0, "intensity_decrease")]


def test_cooperative_windows_need_objects_and_persons_for_twenty_seconds() -> None:
    ball = object_track("object_0", "ball", [float(t) for t in range(0, 40)])
    parent = person_track("person_0", [(float(t), 0.5, 0.5) for t in range(0, 30)])

    result = analyze_play_patterns([ball], [parent])

    assert len(result.cooperative_patterns) == 1
    pattern = result.cooperative_patterns[0]
    assert (pattern.start, pattern.end, pattern.duration) == (0.0, 30.0, 30.0)
    assert pattern.participants == ["person_0"]
    assert pattern.roles == ["unknown"]


def test_short_cooperation_is_not_a_pattern() -> None:
    ball = object_track("object_0", "ball", [float(t) for t in range(0, 40)])
    parent = person_track("person_0", [(float(t), 0.5, 0.5) for t in range(0, 10)])

    result = analyze_play_patterns([ball], [parent])

    assert result.cooperative_patterns == []


def test_creativity_indicators() -> None:
    tracks = [
        object_track("object_0", "ball", [float(t) for t in range(10)], confidence=0.6),
        object_track("object_1", "doll", [float(t) for t in range(10)], confidence=0.6),
        object_track("object_2", "book", [float(t) for t in range(10)], confidence=0.6),
    ]

    result = analyze_play_patterns(tracks, innovation_baseline=2)

    creativity = result.creativity_indicators
    assert creativity.diversity_score == pytest.approx(100.0)
    assert creativity.innovation_events == 1
    assert creativity.exploration_ratio == pytest.approx(0.8)
    assert creativity.total_events == 30


def test_back_and_forth_switches_signal_conflict() -> None:
    ball = object_track("object_0", "ball", [0.0, 2.0])
    doll = object_track("object_1", "doll", [1.0])

    result = analyze_play_patterns([ball, doll])

    assert len(result.toy_usage.switches) == 2
    assert result.conflict.contested_switches == 1
    assert result.conflict.conflict_frequency == pytest.approx(0.5)


def test_ratios_stay_in_unit_range_for_dense_input() -> None:
    tracks = [object_track(f"object_{idx}", f"toy {idx}", [t * 0.5 for t in range(200)]) for idx in range(6)]

    result = analyze_play_patterns(tracks)

    assert 0.0 <= result.toy_usage.sharing_ratio <= 1.0
    assert 0.0 <= result.creativity_indicators.exploration_ratio <= 1.0
    assert 0.0 <= result.overall_score <= 100.0


def test_no_objects_returns_empty_result() -> None:
    result = analyze_play_patterns([], [])

    assert result.toy_usage.toys == {}
    assert result.toy_usage.sharing_ratio == 0.0
    assert result.activity_transitions == []
    assert result.creativity_indicators.diversity_score == 0.0


@pytest.mark.parametrize(("doll_time", "expected_switches"), [(29.5, 1), (30.0, 0)])
def test_toy_switch_needs_gap_under_thirty_seconds(doll_time: float, expected_switches: int) -> None:
    ball = object_track("object_0", "ball", [0.0])
    doll = object_track("object_1", "doll", [doll_time])

    result = analyze_play_patterns([ball, doll])

    assert len(result.toy_usage.switches) == expected_switches


def test_empty_toy_keywords_disable_keyword_matching() -> None:
    ball = object_track("object_0", "ball", [0.0, 1.0], confidence=0.5)

    default = analyze_play_patterns([ball])
    disabled = analyze_play_patterns([ball], toy_keywords=[])

    assert set(default.toy_usage.toys) == {"ball"}
    assert disabled.toy_usage.toys == {}


def test_person_events_in_object_tracks_are_ignored() -> None:
    ball = object_track("object_0", "ball", [0.0, 1.0, 2.0])
    stray = person_track("person_0", [(0.5, 0.5, 0.5), (1.5, 0.5, 0.5)])

    result = analyze_play_patterns([ball, stray])

    assert set(result.toy_usage.toys) == {"ball"}
    assert result.creativity_indicators.total_events == 3


def test_cooperative_runs_break_at_gaps() -> None:
    times = [t * 0.5 for t in range(60)] + [1000.0 + t * 0.5 for t in range(60)]
    tracks = [object_track("object_0", "ball", times), object_track("object_1", "doll", times)]
    parent = person_track("person_0", [(t, 0.5, 0.5) for t in times])

    result = analyze_play_patterns(tracks, [parent])

    assert [(pattern.start, pattern.end) for pattern in result.cooperative_patterns] == [
        (0.0, 30.0),
        (1000.0, 1030.0),
    ]
