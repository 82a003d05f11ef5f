# ABOUTME: Verifies the dropout report CLI exposes its commands and runs over parquet exports.
# ABOUTME: Uses Typer's CliRunner with in-memory cache and alert collaborators.

import json

import pandas as pd
from typer.testing import CliRunner

from scripts import dropout_report

runner = CliRunner()


def _write_exports(data_dir):
    pd.DataFrame(
        [
            {"student_id": "s1", "course_id": "c1", "timestamp": "2024-02-20T10:00:00Z",
             "activity_type": "FORUM_POST", "duration": 60.0, "metadata": json.dumps({})},
            {"student_id": "s2", "course_id": "c1", "timestamp": "2024-02-21T10:00:00Z",
             "activity_type": "HELP_REQUEST", "duration": 30.0, "metadata": json.dumps({"isHelpRelated": True})},
        ]
    ).to_parquet(data_dir / "activities.parquet", index=False)
    pd.DataFrame(
        [{"student_id": "s1", "course_id": "c1", "start_time": "2024-02-20T09:00:00Z", "duration": 1800.0}]
    ).to_parquet(data_dir / "sessions.parquet", index=False)
    pd.DataFrame(
        [
            {"student_id": "s1", "course_id": "c1", "date": "2024-02-20", "engagement_score": 15.0,
             "average_quiz_score": 35.0, "total_time_spent": 5.0},
            {"student_id": "s2", "course_id": "c1", "date": "2024-02-21", "engagement_score": 25.0,
             "average_quiz_score": 50.0, "total_time_spent": 10.0},
        ]
    ).to_parquet(data_dir / "daily_analytics.parquet", index=False)


def test_cli_has_predict_scan_and_outcomes_commands():
    command_names = {cmd.name or cmd.callback.__name__ for cmd in dropout_report.app.registered_commands}
    assert {"predict", "scan", "outcomes"} <= command_names


def test_predict_command_prints_report(tmp_path, monkeypatch):
    monkeypatch.delenv("DROPOUT_RISK_REDIS_URL", raising=False)
    monkeypatch.delenv("DROPOUT_RISK_NATS_URL", raising=False)
    _write_exports(tmp_path)

    result = runner.invoke(
        dropout_report.app,
        ["predict", "--student-id", "s1", "--data-dir", str(tmp_path), "--as-of", "2024-03-01T00:00:00"],
    )

    assert result.exit_code == 0, result.output
    assert "Student: s1" in result.output
    assert "RISK FACTORS" in result.output


def test_scan_command_writes_at_risk_table(tmp_path, monkeypatch):
    monkeypatch.delenv("DROPOUT_RISK_REDIS_URL", raising=False)
    monkeypatch.delenv("DROPOUT_RISK_NATS_URL", raising=False)
    _write_exports(tmp_path)
    output = tmp_path / "out" / "at_risk.parquet"

    result = runner.invoke(
        dropout_report.app,
        [
            "scan",
            "--course-id", "c1",
            "--threshold", "0",
            "--data-dir", str(tmp_path),
            "--as-of", "2024-03-01T00:00:00",
            "--output", str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    table = pd.read_parquet(output)
    assert sorted(table["student_id"]) == ["s1", "s2"]
    assert table["risk_score"].is_monotonic_decreasing


def test_outcomes_command_with_missing_exports(tmp_path, monkeypatch):
    monkeypatch.delenv("DROPOUT_RISK_REDIS_URL", raising=False)
    monkeypatch.delenv("DROPOUT_RISK_NATS_URL", raising=False)

    result = runner.invoke(
        dropout_report.app,
        ["outcomes", "--student-id", "ghost", "--data-dir", str(tmp_path), "--as-of", "2024-03-01"],
    )

    assert result.exit_code == 0, result.output
    assert "2024-12-26" in result.output
