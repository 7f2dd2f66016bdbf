from __future__ import annotations

from types import SimpleNamespace

import pytest

from interplay.ingest.time_offsets import normalize_time_offset


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 0.0),
        (0, 0.0),
        (12, 12.0),
        (3.25, 3.25),
        ("4.5s", 4.5),
        ("7", 7.0),
        (" 8.25s ", 8.25),
        ({"seconds": 3, "nanos": 500_000_000}, 3.5),
        ({"seconds": "12"}, 12.0),
        ({"nanos": 250_000_000}, 0.25),
        (SimpleNamespace(seconds=2, nanos=100_000_000), 2.1),
    ],
)
def test_normalize_time_offset_accepts_known_shapes(raw, expected: float) -> None:
    assert normalize_time_offset(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw",
    ["abc", "-1.5s", "1.5ms", "", {"start": 4}, ["1s"], True, float("nan"), float("inf"), object()],
)
def test_normalize_time_offset_returns_zero_for_unrecognized_shapes(raw) -> None:
    assert normalize_time_offset(raw) == 0.0


@pytest.mark.parametrize("raw", [0.0, 1.0, 12.345, "9.75s", {"seconds": 5, "nanos": 1}, -2.5])
def test_normalize_time_offset_is_idempotent(raw) -> None:
    once = normalize_time_offset(raw)

    assert normalize_time_offset(once) == once


def test_normalize_time_offset_ignores_malformed_components() -> None:
    assert normalize_time_offset({"seconds": "soon", "nanos": 500_000_000}) == pytest.approx(0.5)
