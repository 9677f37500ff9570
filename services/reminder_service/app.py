"""
FastAPI service for reminder scheduling.

This service owns a single ReminderScheduler and exposes its operations as
REST API endpoints. A background delivery loop fires due notifications and
removes their local records, so the stored list only holds pending reminders.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException

from reminder_server.config import SchedulerConfig
from reminder_server.conflicts import check_weekly_conflict
from reminder_server.logging_setup import setup_logging
from reminder_server.models import (
    RejectionReason,
    Reminder,
    ReminderKind,
    WeeklySession,
)
from reminder_server.notifier import LocalNotifier
from reminder_server.scheduler import ReminderScheduler, build_scheduler
from reminder_server.store import StorageError
from services.shared.models import (
    Reminder as PydanticReminder,
    NotificationSettings as PydanticNotificationSettings,
    WeeklySession as PydanticWeeklySession,
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

logger = logging.getLogger(__name__)

# Global scheduler - initialized on startup
scheduler: t.Optional[ReminderScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the scheduler and run the delivery loop for the app's lifetime."""
    global scheduler

    config = SchedulerConfig.from_env()
    setup_logging(config.log_level)

    notifier = LocalNotifier()
    scheduler = build_scheduler(config, notifier)
    # Records left over from notifications that fired while we were down
    await scheduler.prune_fired()
    # The new notifier starts empty; reload reminders that are still pending
    await scheduler.restore_pending()

    stop_event = asyncio.Event()
    delivery_task = asyncio.create_task(
        notifier.run_delivery_loop(stop_event, config.delivery_interval)
    )

    yield

    stop_event.set()
    await delivery_task


app = FastAPI(
    title="Reminder Service",
    description="REST API for task, session and custom reminder scheduling",
    version="1.0.0",
    lifespan=lifespan,
)


def get_scheduler() -> ReminderScheduler:
    """Dependency returning the service's scheduler."""
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Reminder scheduler is not initialized")
    return scheduler


def _local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _to_pydantic_reminder(reminder: Reminder) -> PydanticReminder:
    return PydanticReminder(
        id=reminder.id,
        kind=reminder.kind.value,
        subject_ref_id=reminder.subject_ref_id,
        title=reminder.title,
        body=reminder.body,
        description=reminder.description,
        target_time=reminder.target_time,
        trigger_time=reminder.trigger_time,
        lead_minutes=reminder.lead_minutes,
        scheduled_at=reminder.scheduled_at,
        data=reminder.data,
    )


def _scheduled_or_422(reminder_id: t.Optional[str], sched: ReminderScheduler) -> ScheduleReminderResponse:
    if reminder_id is None:
        reason = sched.last_rejection.value if sched.last_rejection else "rejected"
        raise HTTPException(status_code=422, detail=f"Reminder not scheduled: {reason}")
    return ScheduleReminderResponse(id=reminder_id)


def _kind(kind: t.Optional[ReminderKindName]) -> t.Optional[ReminderKind]:
    return ReminderKind(kind) if kind else None


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "reminder-service"}


@app.post("/reminders/task", response_model=ScheduleReminderResponse)
async def schedule_task_reminder(
        request: ScheduleTaskReminderRequest,
        sched: ReminderScheduler = Depends(get_scheduler),
) -> ScheduleReminderResponse:
    """
    Schedule a reminder ahead of a task's due date.

    Returns 422 if the reminder was rejected (no permission, turned off,
    or trigger time not in the future).
    """
    try:
        reminder_id = await sched.schedule_task_reminder(
            request.task_id,
            request.title,
            _local_naive(request.due_date),
            request.lead_minutes,
            request.description,
        )
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error scheduling task reminder: {str(e)}")
    return _scheduled_or_422(reminder_id, sched)


@app.post("/reminders/session", response_model=ScheduleReminderResponse)
async def schedule_session_reminder(
        request: ScheduleSessionReminderRequest,
        sched: ReminderScheduler = Depends(get_scheduler),
) -> ScheduleReminderResponse:
    """Schedule a reminder ahead of a study session."""
    try:
        reminder_id = await sched.schedule_session_reminder(
            request.session_id,
            request.title,
            _local_naive(request.session_start),
            request.lead_minutes,
        )
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error scheduling session reminder: {str(e)}")
    return _scheduled_or_422(reminder_id, sched)


@app.post("/reminders/custom", response_model=ScheduleReminderResponse)
async def schedule_custom_reminder(
        request: ScheduleCustomReminderRequest,
        sched: ReminderScheduler = Depends(get_scheduler),
) -> ScheduleReminderResponse:
    """Schedule a free-form reminder at an explicit time."""
    try:
        reminder_id = await sched.schedule_custom_reminder(
            request.title,
            request.body,
            _local_naive(request.trigger_time),
            request.data,
        )
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error scheduling custom reminder: {str(e)}")
    return _scheduled_or_422(reminder_id, sched)


@app.get("/reminders", response_model=list[PydanticReminder])
async def list_reminders(sched: ReminderScheduler = Depends(get_scheduler)) -> list[PydanticReminder]:
    """
    List all stored reminders.

    Returns reminders in the order they were scheduled.
    """
    try:
        return [_to_pydantic_reminder(r) for r in await sched.list_reminders()]
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error listing reminders: {str(e)}")


@app.get("/reminders/count", response_model=RemindersCountResponse)
async def count_active_reminders(sched: ReminderScheduler = Depends(get_scheduler)) -> RemindersCountResponse:
    """Count reminders whose target time is still ahead."""
    try:
        return RemindersCountResponse(active=await sched.count_active_reminders())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error counting reminders: {str(e)}")


@app.get("/reminders/subject/{subject_ref_id}", response_model=list[PydanticReminder])
async def list_reminders_for(
        subject_ref_id: str,
        kind: t.Optional[ReminderKindName] = None,
        sched: ReminderScheduler = Depends(get_scheduler),
) -> list[PydanticReminder]:
    """List the reminders of one task or session."""
    try:
        reminders = await sched.list_reminders_for(subject_ref_id, _kind(kind))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error listing reminders: {str(e)}")
    return [_to_pydantic_reminder(r) for r in reminders]


@app.delete("/reminders/subject/{subject_ref_id}")
async def cancel_reminders_for(
        subject_ref_id: str,
        kind: t.Optional[ReminderKindName] = None,
        sched: ReminderScheduler = Depends(get_scheduler),
):
    """Cancel every reminder of a task or session (best effort)."""
    try:
        await sched.cancel_reminders_for(subject_ref_id, _kind(kind))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error cancelling reminders: {str(e)}")
    return {"subject_ref_id": subject_ref_id, "cancelled": True}


@app.delete("/reminders/{reminder_id}")
async def cancel_reminder(reminder_id: str, sched: ReminderScheduler = Depends(get_scheduler)):
    """
    Cancel a reminder.

    Cancelling an unknown id succeeds and changes nothing.
    """
    try:
        await sched.cancel_reminder(reminder_id)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error cancelling reminder: {str(e)}")
    return {"id": reminder_id, "cancelled": True}


@app.post("/reminders/{reminder_id}/reschedule", response_model=ScheduleReminderResponse)
async def reschedule_reminder(
        reminder_id: str,
        request: RescheduleReminderRequest,
        sched: ReminderScheduler = Depends(get_scheduler),
) -> ScheduleReminderResponse:
    """Move a reminder to a new due date, session start or trigger time."""
    try:
        new_id = await sched.reschedule_reminder(reminder_id, _local_naive(request.new_basis))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error rescheduling reminder: {str(e)}")
    if new_id is None and sched.last_rejection is RejectionReason.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return _scheduled_or_422(new_id, sched)


@app.post("/reminders/prune", response_model=PruneRemindersResponse)
async def prune_fired_reminders(sched: ReminderScheduler = Depends(get_scheduler)) -> PruneRemindersResponse:
    """Remove records of reminders whose trigger time has passed."""
    try:
        return PruneRemindersResponse(removed=await sched.prune_fired())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error pruning reminders: {str(e)}")


@app.get("/settings", response_model=PydanticNotificationSettings)
async def get_settings(sched: ReminderScheduler = Depends(get_scheduler)) -> PydanticNotificationSettings:
    """Return the notification settings."""
    try:
        settings = await sched.get_settings()
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error reading settings: {str(e)}")
    return PydanticNotificationSettings(**settings.to_dict())


@app.patch("/settings", response_model=PydanticNotificationSettings)
async def update_settings(
        request: UpdateSettingsRequest,
        sched: ReminderScheduler = Depends(get_scheduler),
) -> PydanticNotificationSettings:
    """Update some of the notification settings."""
    try:
        settings = await sched.update_settings(**request.model_dump(exclude_none=True))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Error updating settings: {str(e)}")
    return PydanticNotificationSettings(**settings.to_dict())


@app.post("/schedule/conflicts", response_model=CheckConflictResponse)
async def check_conflict(request: CheckConflictRequest) -> CheckConflictResponse:
    """
    Check a candidate slot against the weekly schedule.

    Sessions on other days are ignored; touching boundaries are allowed.
    """
    sessions = [WeeklySession(**s.model_dump()) for s in request.sessions]
    try:
        result = check_weekly_conflict(
            sessions,
            request.day_of_week,
            request.start_time,
            request.end_time,
            request.exclude_session_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    conflicting = None
    if result.conflicting_session is not None:
        conflicting = PydanticWeeklySession(**vars(result.conflicting_session))
    return CheckConflictResponse(
        has_conflict=result.has_conflict,
        message=result.message,
        conflicting_session=conflicting,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8004)
