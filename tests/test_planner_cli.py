"""Tests for the planner command line."""
import json
from unittest.mock import patch

from click.testing import CliRunner

from planner_cli.run import main


def write_sessions(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps([
        {"id": "1", "day_of_week": 1, "start_time": "09:00", "end_time": "10:00", "title": "Math"},
    ]), encoding="utf-8")
    return str(path)


def test_check_conflict_reports_overlap(tmp_path) -> None:
    result = CliRunner().invoke(main, ["check-conflict", write_sessions(tmp_path), "1", "09:30", "10:30"])

    assert result.exit_code == 1
    assert "Math" in result.output
    assert "9:00 AM - 10:00 AM" in result.output


def test_check_conflict_allows_boundary_touch(tmp_path) -> None:
    result = CliRunner().invoke(main, ["check-conflict", write_sessions(tmp_path), "1", "10:00", "11:00"])

    assert result.exit_code == 0
    assert "No conflict" in result.output


@patch("planner_cli.run._schedule_task_reminder", return_value="abc123")
def test_task_command(mock_schedule) -> None:
    result = CliRunner().invoke(main, ["task", "1", "Essay", "2025-06-10T09:00", "--lead", "30"])

    assert result.exit_code == 0
    assert "abc123" in result.output
    mock_schedule.assert_called_once_with("1", "Essay", "2025-06-10T09:00", 30, "")


@patch("planner_cli.run._schedule_task_reminder", return_value=None)
def test_task_command_reports_rejection(mock_schedule) -> None:
    result = CliRunner().invoke(main, ["task", "1", "Essay", "2020-01-01T09:00"])

    assert result.exit_code == 1
    assert "not scheduled" in result.output


@patch("planner_cli.run._count_active_reminders", side_effect=RuntimeError("Error calling reminder service: refused"))
def test_service_errors_exit_cleanly(mock_count) -> None:
    result = CliRunner().invoke(main, ["count"])

    assert result.exit_code == 1
    assert "refused" in result.output


@patch("planner_cli.run._cancel_reminders_for")
def test_cancel_by_subject(mock_cancel) -> None:
    result = CliRunner().invoke(main, ["cancel", "--subject", "7", "--kind", "session"])

    assert result.exit_code == 0
    mock_cancel.assert_called_once_with("7", "session")


def test_cancel_needs_a_target() -> None:
    result = CliRunner().invoke(main, ["cancel"])

    assert result.exit_code == 2


def test_malformed_date_is_a_usage_error() -> None:
    result = CliRunner().invoke(main, ["task", "t1", "Essay", "next-friday"])

    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)
    assert "next-friday" in result.output
