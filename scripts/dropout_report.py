# ABOUTME: Provides a CLI that scores dropout risk from exported activity, session, and analytics files.
# ABOUTME: Supports single-student reports, at-risk scans, and learning outcome forecasts.

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from src.dropout_risk.adapters import NatsAlertPublisher, RedisPredictionCache
from src.dropout_risk.config import EngineConfig, load_engine_config
from src.dropout_risk.orchestrator import DropoutRiskPredictor
from src.dropout_risk.prediction import format_prediction
from src.dropout_risk.sources import FrameRecordSource, InMemoryTTLCache, QueueAlertSink

console = Console()
app = typer.Typer(help="Score student dropout risk from exported learning records.")

LEVEL_COLORS = {"LOW": "green", "MEDIUM": "yellow", "HIGH": "orange3", "CRITICAL": "red"}


def _default_data_dir() -> Path:
    return Path("data/interim")


def _read_frame(path: Path) -> Optional[pd.DataFrame]:
    if not path.exists():
        console.print(f"[yellow]Missing {path}; treating as empty[/yellow]")
        return None
    return pd.read_parquet(path)


def _load_config(config: Optional[Path]) -> EngineConfig:
    if config is None:
        return EngineConfig()
    return load_engine_config(config)


def _clock(as_of: Optional[str]):
    if not as_of:
        return None
    fixed = datetime.fromisoformat(as_of)
    if fixed.tzinfo is None:
        fixed = fixed.replace(tzinfo=timezone.utc)
    return lambda: fixed


async def _run(data_dir: Path, config: Optional[Path], as_of: Optional[str], action):
    source = FrameRecordSource(
        activities=_read_frame(data_dir / "activities.parquet"),
        sessions=_read_frame(data_dir / "sessions.parquet"),
        analytics=_read_frame(data_dir / "daily_analytics.parquet"),
    )
    engine_config = _load_config(config)

    redis_url = os.environ.get("DROPOUT_RISK_REDIS_URL")
    nats_url = os.environ.get("DROPOUT_RISK_NATS_URL")
    cache = RedisPredictionCache.from_url(redis_url) if redis_url else InMemoryTTLCache()
    alerts = (
        await NatsAlertPublisher.connect(nats_url, subject=engine_config.alert_subject)
        if nats_url
        else QueueAlertSink()
    )
    predictor = DropoutRiskPredictor(source, cache, alerts, config=engine_config, clock=_clock(as_of))
    try:
        return await action(predictor)
    finally:
        if isinstance(alerts, NatsAlertPublisher):
            await alerts.close()
        if isinstance(cache, RedisPredictionCache):
            await cache.close()


@app.command()
def predict(
    student_id: str = typer.Option(..., "--student-id", help="Student identifier."),
    course_id: str = typer.Option(None, "--course-id", help="Restrict to one course."),
    data_dir: Path = typer.Option(_default_data_dir(), "--data-dir", help="Directory with activities/sessions/daily_analytics parquet."),
    config: Path = typer.Option(None, "--config", help="Engine config YAML (configs/dropout_risk.yaml)."),
    as_of: str = typer.Option(None, "--as-of", help="ISO timestamp to score at instead of now."),
) -> None:
    """
    Predict dropout risk for one student and explain it.
    """
    prediction = asyncio.run(
        _run(data_dir, config, as_of, lambda p: p.predict_student_dropout_risk(student_id, course_id))
    )
    console.print(format_prediction(prediction), markup=False, highlight=False)


@app.command()
def scan(
    course_id: str = typer.Option(None, "--course-id", help="Restrict to one course."),
    threshold: float = typer.Option(70.0, "--threshold", help="Minimum risk score to report."),
    data_dir: Path = typer.Option(_default_data_dir(), "--data-dir", help="Directory with activities/sessions/daily_analytics parquet."),
    config: Path = typer.Option(None, "--config", help="Engine config YAML."),
    as_of: str = typer.Option(None, "--as-of", help="ISO timestamp to score at instead of now."),
    output: Path = typer.Option(None, "--output", help="Optional parquet path for the at-risk table."),
) -> None:
    """
    List active students whose dropout risk is at or above the threshold.
    """
    result = asyncio.run(
        _run(data_dir, config, as_of, lambda p: p.get_at_risk_students(course_id, threshold))
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Student")
    table.add_column("Risk")
    table.add_column("Level")
    table.add_column("Top factor")
    rows = []
    for prediction in result.predictions:
        level = prediction.risk_level.value
        color = LEVEL_COLORS.get(level, "white")
        top = prediction.factors[0].name if prediction.factors else "-"
        table.add_row(prediction.student_id, f"{prediction.risk_score:.1f}", f"[{color}]{level}[/{color}]", top)
        rows.append(
            {
                "student_id": prediction.student_id,
                "course_id": prediction.course_id,
                "risk_score": prediction.risk_score,
                "risk_level": level,
                "confidence": prediction.confidence,
            }
        )
    console.print(table)

    for failure in result.failures:
        console.print(f"[red]✗ {failure.student_id}: {failure.error}[/red]")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(rows).to_parquet(output, index=False)
        console.print(f"[bold]Saved {len(rows)} at-risk students to {output}[/bold]")


@app.command()
def outcomes(
    student_id: str = typer.Option(..., "--student-id", help="Student identifier."),
    course_id: str = typer.Option(None, "--course-id", help="Restrict to one course."),
    data_dir: Path = typer.Option(_default_data_dir(), "--data-dir", help="Directory with activities/sessions/daily_analytics parquet."),
    config: Path = typer.Option(None, "--config", help="Engine config YAML."),
    as_of: str = typer.Option(None, "--as-of", help="ISO timestamp to score at instead of now."),
) -> None:
    """
    Forecast completion date, final grade, and pacing for one student.
    """
    report = asyncio.run(
        _run(data_dir, config, as_of, lambda p: p.predict_learning_outcomes(student_id, course_id))
    )
    forecast = report.forecast
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Outcome")
    table.add_column("Forecast")
    table.add_row("Expected completion", forecast.expected_completion_date)
    table.add_row("Expected final grade", f"{forecast.expected_final_grade:.1f}")
    table.add_row("Recommended pace", forecast.recommended_pace)
    table.add_row("Success probability", f"{forecast.success_probability:.1f}%")
    table.add_row("Struggling topics", ", ".join(forecast.struggling_topics) or "-")
    table.add_row("Intervention needs", ", ".join(forecast.intervention_needs) or "-")
    console.print(table)
    console.print(f"Confidence: {report.confidence:.0f}%")


if __name__ == "__main__":
    app()
