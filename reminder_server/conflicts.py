# -*- coding: utf-8 -*-
"""
Weekly schedule conflict checking.

All checks are pure: they compare half-open ``[start, end)`` intervals in
minutes since midnight and never touch storage.
"""
from __future__ import annotations

import logging
import typing as t
from datetime import time

from reminder_server.models import ConflictResult, WeeklySession

logger = logging.getLogger(__name__)

TimeValue = t.Union[str, time]

ORDER_MESSAGE = "End time must be after start time"


def time_to_minutes(value: TimeValue) -> int:
    """Convert a wall-clock time to minutes since midnight.

    :param value: A ``datetime.time`` or an ``"HH:MM"`` / ``"HH:MM:SS"`` string.
    :return: Minutes since midnight (seconds are dropped).
    :raises ValueError: If the value is not a valid time of day.
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise ValueError(f"Unsupported time value: {value!r}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time format: {value!r}")
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Invalid time format: {value!r}") from None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def format_time(value: TimeValue) -> str:
    """Format a time of day as ``h:MM AM/PM``, e.g. ``"13:05"`` -> ``"1:05 PM"``."""
    total = time_to_minutes(value)
    hour, minute = divmod(total, 60)
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap test; intervals that only touch do not overlap."""
    return a_start < b_end and b_start < a_end


def check_conflict(
        existing_sessions: t.Iterable[WeeklySession],
        candidate_start: TimeValue,
        candidate_end: TimeValue,
        exclude_session_id: t.Optional[str] = None,
) -> ConflictResult:
    """Check a candidate slot against the sessions already on that day.

    The first overlapping session in input order is reported. A session whose
    id equals ``exclude_session_id`` is skipped, so a session being edited
    does not conflict with itself.

    :param existing_sessions: Sessions scheduled on the candidate's day.
    :param candidate_start: Start of the new slot.
    :param candidate_end: End of the new slot.
    :param exclude_session_id: Id of the session being edited, if any.
    :return: A ConflictResult with a human-readable message on conflict.
    """
    start = time_to_minutes(candidate_start)
    end = time_to_minutes(candidate_end)
    if start >= end:
        return ConflictResult(has_conflict=True, message=ORDER_MESSAGE)

    sessions = list(existing_sessions)
    if exclude_session_id is not None:
        exclude_session_id = str(exclude_session_id)
        if not any(str(s.id) == exclude_session_id for s in sessions):
            logger.debug(
                "Excluded session %s is not on this day; checking all sessions",
                exclude_session_id,
            )

    for session in sessions:
        if exclude_session_id is not None and str(session.id) == exclude_session_id:
            continue
        if intervals_overlap(
                start, end,
                time_to_minutes(session.start_time), time_to_minutes(session.end_time),
        ):
            message = (
                f'Conflicts with "{session.title}" '
                f"({format_time(session.start_time)} - {format_time(session.end_time)})"
            )
            return ConflictResult(has_conflict=True, message=message, conflicting_session=session)

    return ConflictResult(has_conflict=False)


def check_weekly_conflict(
        sessions: t.Iterable[WeeklySession],
        day_of_week: int,
        candidate_start: TimeValue,
        candidate_end: TimeValue,
        exclude_session_id: t.Optional[str] = None,
) -> ConflictResult:
    """Run :func:`check_conflict` against the sessions of one weekday.

    :raises ValueError: If ``day_of_week`` is not in 0-6.
    """
    if not 0 <= day_of_week <= 6:
        raise ValueError(f"day_of_week must be between 0 and 6, got {day_of_week}")
    same_day = [s for s in sessions if s.day_of_week == day_of_week]
    return check_conflict(same_day, candidate_start, candidate_end, exclude_session_id)
