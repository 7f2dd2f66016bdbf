from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, TypeVar

import typer

from interplay.config import Settings, load_settings
from interplay.ingest.roles import SizeThresholdRolePolicy
from interplay.ingest.timeline_builder import build_timeline
from interplay.logging_config import configure_logging
from interplay.pipeline_session import analyze_session
from interplay.report.exporter import export_analysis_outputs, generate_summary, load_analysis_result
from interplay.windows import span_count

app = typer.Typer(help="Parent-child interaction scoring from video annotations.")
config_app = typer.Typer(help="Configuration commands.")
timeline_app = typer.Typer(help="Timeline inspection commands.")
report_app = typer.Typer(help="Exported report commands.")

app.add_typer(config_app, name="config")
app.add_typer(timeline_app, name="timeline")
app.add_typer(report_app, name="report")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION_HELP = "Path to YAML configuration file."


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path | None) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path or "defaults")
    return settings


def _load_annotations(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ValueError(f"Annotation file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Annotation file {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Annotation payload must be a JSON object.")
    return payload


@config_app.command("show")
def show_config(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="INTERPLAY_CONFIG",
        help=CONFIG_OPTION_HELP,
    )
) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@timeline_app.command("stats")
def timeline_stats(
    annotations_path: Path = typer.Argument(..., help="Path to annotation JSON payload."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="INTERPLAY_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Build the fused timeline and print counts and data-quality grades."""

    settings = _bootstrap(config_path)
    try:
        annotations = _load_annotations(annotations_path)
    except ValueError as exc:
        logger.error("Timeline stats failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    bundle = build_timeline(
        annotations,
        role_policy=SizeThresholdRolePolicy(threshold=settings.timeline.parent_size_threshold),
        object_min_confidence=settings.timeline.object_min_confidence,
        default_confidence=settings.timeline.default_confidence,
    )
    stats = asdict(bundle.stats)
    buckets = bundle.bucketize(settings.timeline.bucket_seconds)
    typer.echo(
        json.dumps(
            {
                "timeline_events": len(bundle.timeline),
                "bucket_seconds": settings.timeline.bucket_seconds,
                "bucket_count": len(buckets),
                "bucket_span": span_count(bucket.index for bucket in buckets),
                "roles": {track.entity_id: track.role.value for track in bundle.person_tracks},
                **stats,
            },
            indent=2,
            default=str,
        )
    )


@app.command("analyze")
def analyze(
    annotations_path: Path = typer.Argument(..., help="Path to annotation JSON payload."),
    session_id: str | None = typer.Option(None, help="Optional session id. Defaults to the file stem."),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for JSON/CSV/summary outputs."),
    basename: str | None = typer.Option(None, help="Base filename for exported artifacts."),
    parallel: bool | None = typer.Option(None, "--parallel/--sequential", help="Run modality analyzers concurrently."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="INTERPLAY_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Score one session from an annotation payload and export the results."""

    settings = _bootstrap(config_path)
    resolved_session_id = session_id or annotations_path.stem
    total_steps = 3

    try:
        annotations = _run_with_progress(1, total_steps, "Load annotations", lambda: _load_annotations(annotations_path))
        result = _run_with_progress(
            2,
            total_steps,
            "Analyze session",
            lambda: analyze_session(
                annotations,
                settings=settings,
                session_id=resolved_session_id,
                parallel=parallel,
            ),
        )
        exported = _run_with_progress(
            3,
            total_steps,
            "Export outputs",
            lambda: export_analysis_outputs(
                result,
                output_dir or settings.output.output_dir,
                basename=basename or f"{resolved_session_id}_analysis",
            ),
        )
    except (RuntimeError, ValueError, OSError) as exc:
        logger.error("Analysis failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        json.dumps(
            {
                "status": result.status,
                "session_id": resolved_session_id,
                "overall_score": result.overall_score,
                "interaction_quality": result.scores.interaction_quality,
                "data_quality": result.metadata.data_quality,
                "artifacts": {key: str(path) for key, path in exported.items()},
            },
            indent=2,
        )
    )


@report_app.command("summary")
def report_summary(
    result_path: Path = typer.Argument(..., help="Path to an exported analysis JSON."),
) -> None:
    """Print the reviewer digest of an exported analysis."""

    try:
        payload = load_analysis_result(result_path)
        summary = generate_summary(payload)
    except (ValueError, KeyError, OSError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(json.dumps(summary, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
