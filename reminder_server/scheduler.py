# -*- coding: utf-8 -*-
"""
Reminder scheduling for tasks, weekly sessions and custom reminders.

The scheduler computes trigger times, hands notifications to a ``Notifier``
and mirrors every scheduled reminder in a ``ReminderStore``. Expected
failures (no permission, reminders switched off, trigger in the past,
unknown id) never raise: scheduling calls return None, log the reason and
record it in :attr:`ReminderScheduler.last_rejection`. Storage failures
propagate as ``StorageError``.
"""
from __future__ import annotations

import json
import logging
import typing as t
from datetime import datetime, timedelta

from reminder_server.config import SchedulerConfig
from reminder_server.models import (
    NotificationPayload,
    NotificationSettings,
    RejectionReason,
    Reminder,
    ReminderKind,
)
from reminder_server.notifier import LocalNotifier, Notifier
from reminder_server.store import JsonFileKeyValueStore, ReminderStore, SettingsStore

logger = logging.getLogger(__name__)

TASK_TITLE = "📚 Task Reminder"
TASK_SUBTITLE = "Check your pending tasks"
SESSION_TITLE = "⏰ Session Starting Soon"
SESSION_SUBTITLE = "Get ready for your study session"


def task_payload(
        task_id: str,
        title: str,
        due_date: datetime,
        lead_minutes: int,
        description: str = "",
) -> NotificationPayload:
    return NotificationPayload(
        title=TASK_TITLE,
        body=f"{title} is due in {lead_minutes} minutes",
        subtitle=description or TASK_SUBTITLE,
        data={
            "taskId": task_id,
            "type": "task-reminder",
            "dueDate": due_date.isoformat(),
        },
    )


def session_payload(session_id: str, title: str, session_start: datetime, lead_minutes: int) -> NotificationPayload:
    return NotificationPayload(
        title=SESSION_TITLE,
        body=f"{title} starts in {lead_minutes} minutes",
        subtitle=SESSION_SUBTITLE,
        data={
            "scheduleId": session_id,
            "type": "schedule-reminder",
            "sessionTime": session_start.isoformat(),
        },
    )


def custom_payload(title: str, body: str, data: t.Optional[dict[str, t.Any]] = None) -> NotificationPayload:
    return NotificationPayload(
        title=title,
        body=body,
        data={"type": "custom-reminder", **(data or {})},
    )


def payload_for(reminder: Reminder) -> NotificationPayload:
    """Rebuild the notification content of a stored reminder."""
    if reminder.kind is ReminderKind.TASK:
        return task_payload(
            reminder.subject_ref_id, reminder.title, reminder.target_time,
            reminder.lead_minutes, reminder.description,
        )
    if reminder.kind is ReminderKind.SESSION:
        return session_payload(
            reminder.subject_ref_id, reminder.title, reminder.target_time, reminder.lead_minutes,
        )
    return custom_payload(reminder.title, reminder.body, reminder.data)


class ReminderScheduler:
    """Schedules, lists, cancels and reschedules reminders.

    :param notifier: Notification primitive that fires the reminders.
    :param store: Persisted mirror of scheduled reminders.
    :param settings_store: Persisted notification settings.
    :param config: Default lead times per reminder kind.
    :param clock: Source of "now"; injectable for tests.
    """

    def __init__(
            self,
            notifier: Notifier,
            store: ReminderStore,
            settings_store: SettingsStore,
            config: t.Optional[SchedulerConfig] = None,
            clock: t.Callable[[], datetime] = datetime.now,
    ) -> None:
        self.notifier = notifier
        self.store = store
        self.settings_store = settings_store
        self.config = config or SchedulerConfig()
        self.clock = clock
        self.last_rejection: t.Optional[RejectionReason] = None

    # Permission and settings

    async def request_permission(self) -> bool:
        granted = await self.notifier.request_permission()
        logger.info("Notification permission %s", "granted" if granted else "denied")
        return granted

    async def notifications_enabled(self) -> bool:
        return await self.notifier.is_permission_granted()

    async def get_settings(self) -> NotificationSettings:
        return await self.settings_store.load()

    async def update_settings(self, **changes: bool) -> NotificationSettings:
        """Merge ``changes`` into the stored settings and return the result.

        :raises TypeError: If a change names an unknown setting.
        """
        current = await self.settings_store.load()
        merged = current.to_dict()
        for name, value in changes.items():
            if name not in merged:
                raise TypeError(f"Unknown notification setting: {name}")
            merged[name] = bool(value)
        updated = NotificationSettings.from_dict(merged)
        await self.settings_store.save(updated)
        return updated

    # Scheduling

    def _reject(self, reason: RejectionReason, message: str, *args: t.Any) -> None:
        self.last_rejection = reason
        logger.warning(message, *args)

    @staticmethod
    def _check_lead(lead_minutes: int) -> None:
        if lead_minutes < 0:
            raise ValueError(f"lead_minutes must be >= 0, got {lead_minutes}")

    async def _schedule(
            self,
            kind: ReminderKind,
            title: str,
            target_time: datetime,
            lead_minutes: int,
            payload: NotificationPayload,
            subject_ref_id: t.Optional[str] = None,
            description: str = "",
            data: t.Optional[dict[str, t.Any]] = None,
    ) -> t.Optional[str]:
        self.last_rejection = None

        if not await self.notifier.is_permission_granted():
            self._reject(RejectionReason.PERMISSION_DENIED, "Notifications are not enabled")
            return None

        settings = await self.settings_store.load()
        if not settings.allows(kind):
            self._reject(RejectionReason.DISABLED, "%s reminders are turned off", kind.value)
            return None

        trigger_time = target_time - timedelta(minutes=lead_minutes)
        now = self.clock()
        if trigger_time <= now:
            self._reject(
                RejectionReason.PAST_TRIGGER,
                "Trigger time %s is not in the future (now %s)",
                trigger_time.isoformat(), now.isoformat(),
            )
            return None

        if data:
            try:
                json.dumps(data)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Reminder data must be JSON-serializable: {e}") from e

        if not settings.badge_enabled:
            payload.badge = 0
        notification_id = await self.notifier.schedule(payload, trigger_time)

        reminder = Reminder(
            id=notification_id,
            kind=kind,
            subject_ref_id=subject_ref_id,
            title=title,
            body=payload.body,
            description=description,
            target_time=target_time,
            lead_minutes=lead_minutes,
            scheduled_at=now,
            data=dict(data or {}),
        )
        # A storage failure here leaves the notification pending without a
        # local record; the error propagates to the caller.
        await self.store.append(reminder)

        logger.info("%s reminder scheduled: %s at %s", kind.value.capitalize(),
                    notification_id, trigger_time.isoformat())
        return notification_id

    async def schedule_task_reminder(
            self,
            task_id: t.Union[str, int],
            title: str,
            due_date: datetime,
            lead_minutes: t.Optional[int] = None,
            description: str = "",
    ) -> t.Optional[str]:
        """Schedule a reminder ahead of a task's due date.

        :param task_id: Id of the task the reminder is about.
        :param title: Task title shown in the notification.
        :param due_date: When the task is due.
        :param lead_minutes: Minutes before ``due_date`` to fire; defaults to
            the configured task lead time.
        :param description: Task description shown as the subtitle.
        :return: The reminder id, or None if no reminder was created.
        """
        if lead_minutes is None:
            lead_minutes = self.config.task_lead_minutes
        self._check_lead(lead_minutes)
        payload = task_payload(str(task_id), title, due_date, lead_minutes, description)
        return await self._schedule(
            ReminderKind.TASK, title, due_date, lead_minutes, payload,
            subject_ref_id=str(task_id), description=description,
        )

    async def schedule_session_reminder(
            self,
            session_id: t.Union[str, int],
            title: str,
            session_start: datetime,
            lead_minutes: t.Optional[int] = None,
    ) -> t.Optional[str]:
        """Schedule a reminder ahead of a study session.

        :param session_id: Id of the weekly session.
        :param title: Session title shown in the notification.
        :param session_start: When this occurrence of the session starts.
        :param lead_minutes: Minutes before the start to fire; defaults to the
            configured session lead time.
        :return: The reminder id, or None if no reminder was created.
        """
        if lead_minutes is None:
            lead_minutes = self.config.session_lead_minutes
        self._check_lead(lead_minutes)
        payload = session_payload(str(session_id), title, session_start, lead_minutes)
        return await self._schedule(
            ReminderKind.SESSION, title, session_start, lead_minutes, payload,
            subject_ref_id=str(session_id),
        )

    async def schedule_custom_reminder(
            self,
            title: str,
            body: str,
            trigger_time: datetime,
            data: t.Optional[dict[str, t.Any]] = None,
    ) -> t.Optional[str]:
        """Schedule a free-form reminder at an explicit time."""
        payload = custom_payload(title, body, data)
        return await self._schedule(
            ReminderKind.CUSTOM, title, trigger_time, 0, payload, data=data,
        )

    # Cancellation and rescheduling

    async def cancel_reminder(self, reminder_id: str) -> None:
        """Cancel a reminder; unknown ids are ignored."""
        await self.notifier.cancel(reminder_id)
        if await self.store.remove(reminder_id):
            logger.info("Reminder cancelled: %s", reminder_id)
        else:
            logger.debug("No stored reminder %s to cancel", reminder_id)

    async def cancel_reminders_for(
            self,
            subject_ref_id: t.Union[str, int],
            kind: t.Optional[ReminderKind] = None,
    ) -> None:
        """Cancel every reminder about a task or session.

        Each cancellation is attempted even if an earlier one fails.
        """
        for reminder in await self.list_reminders_for(subject_ref_id, kind):
            try:
                await self.cancel_reminder(reminder.id)
            except Exception:
                logger.exception("Error cancelling reminder %s for %s", reminder.id, subject_ref_id)

    async def reschedule_reminder(self, reminder_id: str, new_basis: datetime) -> t.Optional[str]:
        """Move a reminder to a new basis time.

        For task and session reminders ``new_basis`` is the new due date or
        session start and the stored lead time is kept. For custom reminders
        it is the new trigger time.

        :return: The id of the new reminder, or None if the old one is unknown
            or the new one could not be scheduled.
        """
        existing = await self.store.find(reminder_id)
        if existing is None:
            self._reject(RejectionReason.NOT_FOUND, "Reminder %s not found", reminder_id)
            return None

        await self.cancel_reminder(reminder_id)

        if existing.kind is ReminderKind.TASK:
            return await self.schedule_task_reminder(
                existing.subject_ref_id, existing.title, new_basis,
                existing.lead_minutes, existing.description,
            )
        if existing.kind is ReminderKind.SESSION:
            return await self.schedule_session_reminder(
                existing.subject_ref_id, existing.title, new_basis, existing.lead_minutes,
            )
        return await self.schedule_custom_reminder(
            existing.title, existing.body, new_basis, existing.data,
        )

    # Queries

    async def list_reminders(self) -> list[Reminder]:
        return await self.store.load()

    async def list_reminders_for(
            self,
            subject_ref_id: t.Union[str, int],
            kind: t.Optional[ReminderKind] = None,
    ) -> list[Reminder]:
        """Return the stored reminders for a task or session, in storage order."""
        subject_ref_id = str(subject_ref_id)
        return [
            r for r in await self.store.load()
            if r.subject_ref_id == subject_ref_id and (kind is None or r.kind is kind)
        ]

    async def count_active_reminders(self) -> int:
        """Count reminders whose target time is still in the future."""
        now = self.clock()
        return sum(1 for r in await self.store.load() if r.target_time > now)

    # Reconciliation with delivered notifications

    async def handle_delivered(self, reminder_id: str, payload: t.Any = None) -> None:
        """Drop the local record of a reminder the notifier has delivered."""
        if await self.store.remove(reminder_id):
            logger.info("Reminder delivered and removed: %s", reminder_id)

    async def prune_fired(self) -> int:
        """Remove records whose trigger time has passed.

        :return: Number of records removed.
        """
        now = self.clock()
        removed = await self.store.remove_where(lambda r: r.trigger_time <= now)
        if removed:
            logger.info("Pruned %d fired reminder(s)", len(removed))
        return len(removed)

    async def restore_pending(self) -> int:
        """Hand every stored reminder whose trigger is still ahead back to the notifier.

        A fresh notifier starts with an empty queue, so this runs after a
        restart (following :meth:`prune_fired`) to keep stored reminders
        deliverable under their original ids.

        :return: Number of reminders restored.
        """
        now = self.clock()
        settings = await self.settings_store.load()
        restored = 0
        for reminder in await self.store.load():
            if reminder.trigger_time <= now:
                continue
            payload = payload_for(reminder)
            if not settings.badge_enabled:
                payload.badge = 0
            await self.notifier.restore(reminder.id, payload, reminder.trigger_time)
            restored += 1
        if restored:
            logger.info("Restored %d pending reminder(s)", restored)
        return restored


def build_scheduler(
        config: t.Optional[SchedulerConfig] = None,
        notifier: t.Optional[LocalNotifier] = None,
        clock: t.Callable[[], datetime] = datetime.now,
) -> ReminderScheduler:
    """Build a scheduler persisting to the configured JSON file.

    The returned scheduler removes a reminder's record as soon as the
    notifier delivers it.
    """
    config = config or SchedulerConfig.from_env()
    notifier = notifier or LocalNotifier()
    kv = JsonFileKeyValueStore(config.store_path)
    scheduler = ReminderScheduler(
        notifier=notifier,
        store=ReminderStore(kv),
        settings_store=SettingsStore(kv),
        config=config,
        clock=clock,
    )
    notifier.on_delivered(scheduler.handle_delivered)
    return scheduler
