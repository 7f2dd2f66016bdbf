from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "INTERPLAY_"

DEFAULT_TOY_KEYWORDS = [
    "toy",
    "ball",
    "doll",
    "block",
    "car",
    "truck",
    "book",
    "puzzle",
    "game",
    "bear",
    "animal",
]


class TimelineSettings(BaseModel):
    object_min_confidence: float = 0.1
    default_confidence: float = 0.5
    parent_size_threshold: float = 0.15
    bucket_seconds: float = 5.0


class ProximitySettings(BaseModel):
    bucket_seconds: float = 5.0
    proximity_threshold: float = 0.3
    movement_threshold: float = 0.01
    high_activity_threshold: float = 0.05
    contact_distance: float = 0.1
    approach_delta: float = 0.02


class FaceSettings(BaseModel):
    gaze_bucket_seconds: float = 1.0
    engagement_bucket_seconds: float = 5.0
    proximity_change_threshold: float = 0.05


class ConversationSettings(BaseModel):
    transition_gap_seconds: float = 30.0
    initiation_silence_seconds: float = 5.0


class PlaySettings(BaseModel):
    toy_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_TOY_KEYWORDS))
    toy_confidence_threshold: float = 0.7
    sharing_bucket_seconds: float = 5.0
    dominance_min_seconds: float = 15.0
    intensity_window_seconds: float = 30.0
    intensity_change_ratio: float = 0.5
    cooperative_bucket_seconds: float = 10.0
    cooperative_min_objects: int = 2
    cooperative_min_persons: int = 1
    cooperative_min_seconds: float = 20.0
    innovation_baseline: int = 1
    exploration_offset: float = 0.2


class WeightSettings(BaseModel):
    physical_proximity: float = 0.15
    movement_synchrony: float = 0.10
    face_orientation: float = 0.15
    language_frequency: float = 0.15
    language_quality: float = 0.15
    play_diversity: float = 0.10
    attention_span: float = 0.10
    conflict_resolution: float = 0.10


class ScoringSettings(BaseModel):
    score_floor: float = 1.0
    score_ceiling: float = 10.0
    insight_margin: float = 0.5
    parallel_analyzers: bool = False


class OutputSettings(BaseModel):
    output_dir: Path = Path("data/outputs")


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    timeline: TimelineSettings = Field(default_factory=TimelineSettings)
    proximity: ProximitySettings = Field(default_factory=ProximitySettings)
    face: FaceSettings = Field(default_factory=FaceSettings)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    play: PlaySettings = Field(default_factory=PlaySettings)
    weights: WeightSettings = Field(default_factory=WeightSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides.

    An explicitly requested file must exist. When the default location is
    missing, built-in defaults are used instead.
    """

    explicit_path = config_path or os.getenv(f"{ENV_PREFIX}CONFIG")
    resolved_path = Path(explicit_path or DEFAULT_CONFIG_PATH)
    if explicit_path or resolved_path.exists():
        raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    else:
        raw_config = {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
