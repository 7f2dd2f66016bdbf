from __future__ import annotations

import logging
from pathlib import Path

import pytest

from interplay.config import LoggingSettings, load_settings
from interplay.logging_config import configure_logging


def test_load_settings_reads_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("proximity:\n  proximity_threshold: 0.2\nlogging:\n  level: DEBUG\n", encoding="utf-8")

    settings = load_settings(config_path)

    assert settings.proximity.proximity_threshold == 0.2
    assert settings.logging.level == "DEBUG"
    assert settings.weights.face_orientation == 0.15


def test_load_settings_applies_env_overrides(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("", encoding="utf-8")
    monkeypatch.setenv("INTERPLAY_WEIGHTS__PLAY_DIVERSITY", "0.3")
    monkeypatch.setenv("INTERPLAY_SCORING__PARALLEL_ANALYZERS", "yes")
    monkeypatch.setenv("INTERPLAY_PLAY__TOY_KEYWORDS", '["kite"]')
    monkeypatch.setenv("INTERPLAY_PLAY__COOPERATIVE_MIN_PERSONS", "2")
    monkeypatch.setenv("INTERPLAY_UNKNOWN__KEY", "ignored")

    settings = load_settings(config_path)

    assert settings.weights.play_diversity == 0.3
    assert settings.scoring.parallel_analyzers is True
    assert settings.play.toy_keywords == ["kite"]
    assert settings.play.cooperative_min_persons == 2


def test_load_settings_falls_back_to_defaults_without_default_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("INTERPLAY_CONFIG", raising=False)

    settings = load_settings()

    assert settings.timeline.default_confidence == 0.5
    assert settings.output.output_dir == Path("data/outputs")


def test_load_settings_requires_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml")


def test_repository_default_config_matches_model_defaults() -> None:
    config_path = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"

    settings = load_settings(config_path)

    assert settings.model_dump() == type(settings)().model_dump()


@pytest.mark.parametrize(("level", "expected"), [("debug", logging.DEBUG), ("not-a-level", logging.INFO)])
def test_configure_logging_sets_root_level(level: str, expected: int) -> None:
    configure_logging(LoggingSettings(level=level))

    assert logging.getLogger().level == expected
