"""
Shared Pydantic models for REST API serialization.

This module contains Pydantic equivalents of the reminder scheduler's
dataclass models, plus the request/response bodies of the reminder service,
so that the service and its HTTP clients serialize identically.
"""
from __future__ import annotations

import typing as t
from datetime import datetime

from pydantic import BaseModel, Field


# Type literals for commonly used values
ReminderKindName = t.Literal["task", "session", "custom"]


class Reminder(BaseModel):
    """A scheduled reminder as returned by the service."""
    id: str
    kind: ReminderKindName
    subject_ref_id: t.Optional[str] = None
    title: str
    body: str = ""
    description: str = ""
    target_time: datetime
    trigger_time: datetime
    lead_minutes: int
    scheduled_at: datetime
    data: dict[str, t.Any] = Field(default_factory=dict)


class NotificationSettings(BaseModel):
    """User-level switches for reminder delivery."""
    enabled: bool = True
    task_reminders: bool = True
    schedule_reminders: bool = True
    custom_reminders: bool = True
    sound_enabled: bool = True
    badge_enabled: bool = True


class WeeklySession(BaseModel):
    """
    One slot of the weekly schedule, e.g.:
    - Monday 09:00-10:00 "Math"
    """
    id: str
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    start_time: str  # "HH:MM" 24h
    end_time: str    # "HH:MM" 24h
    title: str = ""


# Request/Response Models for API endpoints
class ScheduleTaskReminderRequest(BaseModel):
    """Request model for a task reminder."""
    task_id: str
    title: str
    due_date: datetime
    lead_minutes: t.Optional[int] = Field(default=None, ge=0)
    description: str = ""


class ScheduleSessionReminderRequest(BaseModel):
    """Request model for a session reminder."""
    session_id: str
    title: str
    session_start: datetime
    lead_minutes: t.Optional[int] = Field(default=None, ge=0)


class ScheduleCustomReminderRequest(BaseModel):
    """Request model for a custom reminder."""
    title: str
    body: str
    trigger_time: datetime
    data: dict[str, t.Any] = Field(default_factory=dict)


class RescheduleReminderRequest(BaseModel):
    """Request model for moving a reminder to a new basis time."""
    new_basis: datetime


class ScheduleReminderResponse(BaseModel):
    """Response model for every scheduling endpoint."""
    id: str


class RemindersCountResponse(BaseModel):
    """Response model for the active reminder count."""
    active: int


class PruneRemindersResponse(BaseModel):
    """Response model for pruning fired reminders."""
    removed: int


class UpdateSettingsRequest(BaseModel):
    """Partial update of the notification settings."""
    enabled: t.Optional[bool] = None
    task_reminders: t.Optional[bool] = None
    schedule_reminders: t.Optional[bool] = None
    custom_reminders: t.Optional[bool] = None
    sound_enabled: t.Optional[bool] = None
    badge_enabled: t.Optional[bool] = None


class CheckConflictRequest(BaseModel):
    """Request model for checking a candidate slot against a week's sessions."""
    sessions: list[WeeklySession] = Field(default_factory=list)
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    exclude_session_id: t.Optional[str] = None


class CheckConflictResponse(BaseModel):
    """Response model for a conflict check."""
    has_conflict: bool
    message: t.Optional[str] = None
    conflicting_session: t.Optional[WeeklySession] = None
