"""
Data models for the reminder scheduler and the weekly schedule.

This module contains the dataclasses used to represent scheduled reminders,
notification payloads, notification settings and weekly sessions, together
with their JSON-friendly dict conversions.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, time, timedelta
from enum import Enum
import typing as t


class ReminderKind(str, Enum):
    """What a reminder is about; decides how it is rescheduled."""
    TASK = "task"
    SESSION = "session"
    CUSTOM = "custom"


class RejectionReason(str, Enum):
    """Why a scheduling call did not create a reminder."""
    PERMISSION_DENIED = "permission_denied"
    DISABLED = "disabled"
    PAST_TRIGGER = "past_trigger"
    NOT_FOUND = "not_found"


@dataclass
class Reminder:
    """A persisted reminder pairing a notification id with its metadata."""
    id: str
    kind: ReminderKind
    title: str
    target_time: datetime
    lead_minutes: int
    scheduled_at: datetime
    subject_ref_id: t.Optional[str] = None
    body: str = ""
    description: str = ""
    data: dict[str, t.Any] = field(default_factory=dict)

    @property
    def trigger_time(self) -> datetime:
        """Moment the notification fires: target time minus the lead time."""
        return self.target_time - timedelta(minutes=self.lead_minutes)

    def to_dict(self) -> dict[str, t.Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "subject_ref_id": self.subject_ref_id,
            "title": self.title,
            "body": self.body,
            "description": self.description,
            "target_time": self.target_time.isoformat(),
            "lead_minutes": self.lead_minutes,
            "scheduled_at": self.scheduled_at.isoformat(),
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, t.Any]) -> Reminder:
        """Build a Reminder from its stored dict form.

        :param raw: Dictionary produced by :meth:`to_dict`.
        :return: The decoded Reminder.
        :raises KeyError: If a required field is missing.
        :raises ValueError: If the kind or a timestamp cannot be parsed.
        """
        subject_ref_id = raw.get("subject_ref_id")
        return cls(
            id=str(raw["id"]),
            kind=ReminderKind(raw["kind"]),
            subject_ref_id=None if subject_ref_id is None else str(subject_ref_id),
            title=raw.get("title", ""),
            body=raw.get("body", ""),
            description=raw.get("description", ""),
            target_time=datetime.fromisoformat(raw["target_time"]),
            lead_minutes=int(raw.get("lead_minutes", 0)),
            scheduled_at=datetime.fromisoformat(raw["scheduled_at"]),
            data=dict(raw.get("data") or {}),
        )


@dataclass
class NotificationPayload:
    """Content handed to the notification primitive."""
    title: str
    body: str
    subtitle: str = ""
    data: dict[str, t.Any] = field(default_factory=dict)
    badge: int = 1


@dataclass
class NotificationSettings:
    """User-level switches for reminder delivery."""
    enabled: bool = True
    task_reminders: bool = True
    schedule_reminders: bool = True
    custom_reminders: bool = True
    sound_enabled: bool = True
    badge_enabled: bool = True

    def allows(self, kind: ReminderKind) -> bool:
        """Return True if reminders of ``kind`` may be scheduled."""
        if not self.enabled:
            return False
        if kind is ReminderKind.TASK:
            return self.task_reminders
        if kind is ReminderKind.SESSION:
            return self.schedule_reminders
        return self.custom_reminders

    def to_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, raw: dict[str, t.Any]) -> NotificationSettings:
        # Unknown keys from older or newer clients are dropped
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in raw.items() if k in known})


@dataclass
class WeeklySession:
    """A recurring slot on the weekly schedule."""
    id: str
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: t.Union[str, time]  # "HH:MM" 24h
    end_time: t.Union[str, time]    # "HH:MM" 24h
    title: str = ""


@dataclass
class ConflictResult:
    """Verdict of a conflict check."""
    has_conflict: bool
    message: t.Optional[str] = None
    conflicting_session: t.Optional[WeeklySession] = None
