"""
MCP wrapper for the reminder service.

This module exposes the reminder scheduler as MCP tools that make HTTP calls
to the distributed reminder service. The raw ``_functions`` are also used by
the command-line front end.
"""
from __future__ import annotations

import os
import typing as t
from datetime import datetime

import httpx
from fastmcp import FastMCP

from services.shared.models import (
    Reminder,
    NotificationSettings,
    WeeklySession,
    ReminderKindName,
    ScheduleTaskReminderRequest,
    ScheduleSessionReminderRequest,
    ScheduleCustomReminderRequest,
    RescheduleReminderRequest,
    ScheduleReminderResponse,
    RemindersCountResponse,
    PruneRemindersResponse,
    UpdateSettingsRequest,
    CheckConflictRequest,
    CheckConflictResponse,
)


mcp = FastMCP("ReminderMCPWrapper")

# Service URL - configurable via environment variable
REMINDER_SERVICE_URL = os.getenv("REMINDER_SERVICE_URL", "http://localhost:8004")

# Timeout settings for fast operations (in seconds)
STANDARD_TIMEOUT = 30.0


def _client() -> httpx.Client:
    """HTTP client bound to the reminder service."""
    return httpx.Client(base_url=REMINDER_SERVICE_URL, timeout=STANDARD_TIMEOUT)


def _request(
        method: str,
        path: str,
        action: str,
        json: t.Optional[dict[str, t.Any]] = None,
        params: t.Optional[dict[str, t.Any]] = None,
        allow_status: tuple[int, ...] = (),
) -> httpx.Response:
    """
    Call the reminder service and translate transport errors.

    Responses whose status is in ``allow_status`` are returned to the caller
    instead of being raised.
    """
    try:
        with _client() as client:
            response = client.request(method, path, json=json, params=params)
        if response.status_code not in allow_status:
            response.raise_for_status()
        return response

    except httpx.TimeoutException:
        raise RuntimeError(f"{action} timed out after {STANDARD_TIMEOUT} seconds")
    except httpx.HTTPStatusError as e:
        raise RuntimeError(f"HTTP error from reminder service: {e.response.status_code} {e.response.text}")
    except Exception as e:
        raise RuntimeError(f"Error calling reminder service: {str(e)}")


def _is_rejection(response: httpx.Response) -> bool:
    """A 422 with a plain-text detail is a rejected reminder, not bad input."""
    return response.status_code == 422 and isinstance(response.json().get("detail"), str)


def _schedule(path: str, action: str, body: dict[str, t.Any]) -> t.Optional[str]:
    response = _request("POST", path, action, json=body, allow_status=(422,))
    if response.status_code == 422:
        if _is_rejection(response):
            return None
        raise RuntimeError(f"HTTP error from reminder service: 422 {response.text}")
    return ScheduleReminderResponse(**response.json()).id


def _schedule_task_reminder(
        task_id: str,
        title: str,
        due_date: str,
        lead_minutes: t.Optional[int] = None,
        description: str = "",
) -> t.Optional[str]:
    """
    Schedule a reminder ahead of a task's due date.

    Returns the reminder id, or None if the service rejected the reminder.
    """
    request = ScheduleTaskReminderRequest(
        task_id=task_id,
        title=title,
        due_date=datetime.fromisoformat(due_date),
        lead_minutes=lead_minutes,
        description=description,
    )
    return _schedule("/reminders/task", "Task reminder scheduling", request.model_dump(mode="json"))


def _schedule_session_reminder(
        session_id: str,
        title: str,
        session_start: str,
        lead_minutes: t.Optional[int] = None,
) -> t.Optional[str]:
    """Schedule a reminder ahead of a study session."""
    request = ScheduleSessionReminderRequest(
        session_id=session_id,
        title=title,
        session_start=datetime.fromisoformat(session_start),
        lead_minutes=lead_minutes,
    )
    return _schedule("/reminders/session", "Session reminder scheduling", request.model_dump(mode="json"))


def _schedule_custom_reminder(
        title: str,
        body: str,
        trigger_time: str,
        data: t.Optional[dict[str, t.Any]] = None,
) -> t.Optional[str]:
    """Schedule a free-form reminder at an explicit time."""
    request = ScheduleCustomReminderRequest(
        title=title,
        body=body,
        trigger_time=datetime.fromisoformat(trigger_time),
        data=data or {},
    )
    return _schedule("/reminders/custom", "Custom reminder scheduling", request.model_dump(mode="json"))


def _cancel_reminder(reminder_id: str) -> None:
    """Cancel a reminder; unknown ids are ignored by the service."""
    _request("DELETE", f"/reminders/{reminder_id}", "Reminder cancellation")


def _cancel_reminders_for(subject_ref_id: str, kind: t.Optional[ReminderKindName] = None) -> None:
    """Cancel every reminder of a task or session."""
    params = {"kind": kind} if kind else None
    _request("DELETE", f"/reminders/subject/{subject_ref_id}", "Reminder cancellation", params=params)


def _reschedule_reminder(reminder_id: str, new_basis: str) -> t.Optional[str]:
    """
    Move a reminder to a new due date, session start or trigger time.

    Returns the new id, or None if the reminder is unknown or the new one
    was rejected.
    """
    request = RescheduleReminderRequest(new_basis=datetime.fromisoformat(new_basis))
    response = _request(
        "POST",
        f"/reminders/{reminder_id}/reschedule",
        "Reminder rescheduling",
        json=request.model_dump(mode="json"),
        allow_status=(404, 422),
    )
    if response.status_code == 404 or _is_rejection(response):
        return None
    if response.status_code == 422:
        raise RuntimeError(f"HTTP error from reminder service: 422 {response.text}")
    return ScheduleReminderResponse(**response.json()).id


def _list_reminders() -> list[Reminder]:
    """List every stored reminder."""
    response = _request("GET", "/reminders", "List reminders")
    return [Reminder(**item) for item in response.json()]


def _list_reminders_for(subject_ref_id: str, kind: t.Optional[ReminderKindName] = None) -> list[Reminder]:
    """List the reminders of one task or session, in scheduling order."""
    params = {"kind": kind} if kind else None
    response = _request("GET", f"/reminders/subject/{subject_ref_id}", "List reminders", params=params)
    return [Reminder(**item) for item in response.json()]


def _count_active_reminders() -> int:
    """Count reminders whose target time is still ahead."""
    response = _request("GET", "/reminders/count", "Count reminders")
    return RemindersCountResponse(**response.json()).active


def _prune_fired_reminders() -> int:
    """Remove records of reminders that have already fired."""
    response = _request("POST", "/reminders/prune", "Prune reminders")
    return PruneRemindersResponse(**response.json()).removed


def _get_notification_settings() -> NotificationSettings:
    response = _request("GET", "/settings", "Get settings")
    return NotificationSettings(**response.json())


def _update_notification_settings(**changes: bool) -> NotificationSettings:
    request = UpdateSettingsRequest(**changes)
    response = _request("PATCH", "/settings", "Update settings", json=request.model_dump(exclude_none=True))
    return NotificationSettings(**response.json())


def _check_schedule_conflict(
        sessions: list[WeeklySession],
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_session_id: t.Optional[str] = None,
) -> CheckConflictResponse:
    """Check a candidate slot against the weekly schedule."""
    request = CheckConflictRequest(
        sessions=sessions,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        exclude_session_id=exclude_session_id,
    )
    response = _request("POST", "/schedule/conflicts", "Conflict check", json=request.model_dump())
    return CheckConflictResponse(**response.json())


# MCP tool wrappers that call the raw functions
@mcp.tool()
def schedule_task_reminder(
        task_id: str,
        title: str,
        due_date: str,
        lead_minutes: t.Optional[int] = None,
        description: str = "",
) -> t.Optional[str]:
    """Schedules a reminder before a task's due date (ISO format)."""
    return _schedule_task_reminder(task_id, title, due_date, lead_minutes, description)


@mcp.tool()
def schedule_session_reminder(
        session_id: str,
        title: str,
        session_start: str,
        lead_minutes: t.Optional[int] = None,
) -> t.Optional[str]:
    """Schedules a reminder before a study session starts (ISO format)."""
    return _schedule_session_reminder(session_id, title, session_start, lead_minutes)


@mcp.tool()
def schedule_custom_reminder(
        title: str,
        body: str,
        trigger_time: str,
        data: t.Optional[dict[str, t.Any]] = None,
) -> t.Optional[str]:
    """Schedules a custom reminder at an explicit time (ISO format)."""
    return _schedule_custom_reminder(title, body, trigger_time, data)


@mcp.tool()
def cancel_reminder(reminder_id: str) -> None:
    """Cancels a reminder."""
    _cancel_reminder(reminder_id)


@mcp.tool()
def cancel_reminders_for(subject_ref_id: str, kind: t.Optional[ReminderKindName] = None) -> None:
    """Cancels all reminders of a task or session."""
    _cancel_reminders_for(subject_ref_id, kind)


@mcp.tool()
def reschedule_reminder(reminder_id: str, new_basis: str) -> t.Optional[str]:
    """Moves a reminder to a new due date, session start or trigger time."""
    return _reschedule_reminder(reminder_id, new_basis)


@mcp.tool()
def list_reminders() -> list[Reminder]:
    """Lists all reminders."""
    return _list_reminders()


@mcp.tool()
def list_reminders_for(subject_ref_id: str, kind: t.Optional[ReminderKindName] = None) -> list[Reminder]:
    """Lists the reminders of a task or session."""
    return _list_reminders_for(subject_ref_id, kind)


@mcp.tool()
def count_active_reminders() -> int:
    """Counts reminders that are still upcoming."""
    return _count_active_reminders()


@mcp.tool()
def prune_fired_reminders() -> int:
    """Removes reminders that have already fired."""
    return _prune_fired_reminders()


@mcp.tool()
def get_notification_settings() -> NotificationSettings:
    """Returns the notification settings."""
    return _get_notification_settings()


@mcp.tool()
def update_notification_settings(
        enabled: t.Optional[bool] = None,
        task_reminders: t.Optional[bool] = None,
        schedule_reminders: t.Optional[bool] = None,
        custom_reminders: t.Optional[bool] = None,
        sound_enabled: t.Optional[bool] = None,
        badge_enabled: t.Optional[bool] = None,
) -> NotificationSettings:
    """Updates some of the notification settings."""
    changes = {
        "enabled": enabled,
        "task_reminders": task_reminders,
        "schedule_reminders": schedule_reminders,
        "custom_reminders": custom_reminders,
        "sound_enabled": sound_enabled,
        "badge_enabled": badge_enabled,
    }
    return _update_notification_settings(**{k: v for k, v in changes.items() if v is not None})


@mcp.tool()
def check_schedule_conflict(
        sessions: list[WeeklySession],
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_session_id: t.Optional[str] = None,
) -> CheckConflictResponse:
    """Checks whether a new weekly slot overlaps an existing session."""
    return _check_schedule_conflict(sessions, day_of_week, start_time, end_time, exclude_session_id)


if __name__ == "__main__":
    mcp.run()
