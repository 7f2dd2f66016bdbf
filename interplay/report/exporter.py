from __future__ import annotations

import csv
import json
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any

from interplay.pipeline_session import AnalysisResult

CSV_FIELDS = ["kind", "category", "raw_value", "weight", "normalized_value"]
REQUIRED_RESULT_KEYS = ("status", "scores", "insights", "metadata")


def serialize_result(result: AnalysisResult) -> dict[str, Any]:
    """Nested JSON-ready view of an analysis result."""

    return _jsonable(asdict(result))


def export_analysis_outputs(
    result: AnalysisResult,
    output_dir: str | Path,
    *,
    basename: str = "session_analysis",
) -> dict[str, Path]:
    """Write the full result JSON, a per-score CSV and a review summary."""

    resolved_output_dir = Path(output_dir)
    resolved_output_dir.mkdir(parents=True, exist_ok=True)

    json_path = resolved_output_dir / f"{basename}.json"
    csv_path = resolved_output_dir / f"{basename}_scores.csv"
    summary_path = resolved_output_dir / f"{basename}_summary.json"

    json_path.write_text(json.dumps(serialize_result(result), indent=2, ensure_ascii=False), encoding="utf-8")
    _write_scores_csv(result, csv_path)
    summary_path.write_text(
        json.dumps(generate_summary(serialize_result(result)), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )

    return {
        "json": json_path,
        "csv": csv_path,
        "summary": summary_path,
    }


def generate_summary(payload: dict[str, Any]) -> dict[str, Any]:
    """Reviewer-facing digest of a serialized result."""

    scores = payload["scores"]
    insights = payload["insights"]
    metadata = payload["metadata"]
    return {
        "session_id": metadata.get("session_id"),
        "status": payload["status"],
        "overall_score": scores["overall"]["normalized_value"],
        "interaction_quality": scores["interaction_quality"],
        "category_scores": {row["category"]: row["normalized_value"] for row in scores["categories"]},
        "data_quality": metadata.get("data_quality"),
        "confidence_score": metadata.get("confidence_score"),
        "analysis_depth": metadata.get("analysis_depth"),
        "strengths": insights.get("strengths", []),
        "areas_for_improvement": insights.get("areas_for_improvement", []),
        "recommendations": insights.get("recommendations", []),
        "key_findings": insights.get("key_findings", []),
        "summary": insights.get("summary", ""),
    }


def load_analysis_result(path: str | Path) -> dict[str, Any]:
    """Load an exported result JSON for downstream review tooling."""

    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Analysis result at {path} is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ValueError("Analysis result must be a JSON object.")
    missing = [key for key in REQUIRED_RESULT_KEYS if key not in payload]
    if missing:
        raise ValueError(f"Analysis result is missing keys: {', '.join(missing)}")

    return payload


def _write_scores_csv(result: AnalysisResult, path: Path) -> None:
    rows = [("signal", score) for score in result.scores.signals]
    rows.extend(("category", score) for score in result.scores.categories)
    rows.append(("overall", result.scores.overall))

    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for kind, score in rows:
            writer.writerow(
                {
                    "kind": kind,
                    "category": score.category,
                    "raw_value": round(score.raw_value, 4),
                    "weight": round(score.weight, 4),
                    "normalized_value": round(score.normalized_value, 4),
                }
            )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(_jsonable(key)): _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(item) for item in value]
    return value
