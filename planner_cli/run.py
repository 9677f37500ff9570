# -*- coding: utf-8 -*-
import typing as t

import click
from rich.panel import Panel
from rich.text import Text

from mcp_wrappers.reminders.mcp_service import (
    _schedule_task_reminder,
    _schedule_session_reminder,
    _schedule_custom_reminder,
    _cancel_reminder,
    _cancel_reminders_for,
    _reschedule_reminder,
    _list_reminders,
    _list_reminders_for,
    _count_active_reminders,
    _prune_fired_reminders,
)
from planner_cli.utils import console, create_reminders_table, load_sessions
from reminder_server.config import SchedulerConfig
from reminder_server.conflicts import check_weekly_conflict
from reminder_server.logging_setup import setup_logging

KINDS = click.Choice(["task", "session", "custom"])


def _report_scheduled(reminder_id: t.Optional[str], what: str) -> None:
    if reminder_id is None:
        console.print(
            f"[yellow]{what} was not scheduled.[/yellow] "
            "Notifications may be off, or the reminder time has already passed."
        )
        raise SystemExit(1)
    console.print(f"[bold green]✅ {what} scheduled:[/bold green] {reminder_id}")


def _run(func: t.Callable[..., t.Any], *args: t.Any, **kwargs: t.Any) -> t.Any:
    """Call a reminder service function, turning failures into a clean exit."""
    try:
        return func(*args, **kwargs)
    except ValueError as e:
        # Dates and times are parsed before any request is made
        raise click.BadParameter(str(e))
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """Manage study reminders through the reminder service."""
    setup_logging("DEBUG" if verbose else SchedulerConfig.from_env().log_level)


@main.command("list")
@click.option("--subject", "subject_ref_id", help="Only reminders for this task or session id.")
@click.option("--kind", type=KINDS, help="Only reminders of this kind.")
def list_command(subject_ref_id: t.Optional[str], kind: t.Optional[str]) -> None:
    """List scheduled reminders."""
    if subject_ref_id:
        reminders = _run(_list_reminders_for, subject_ref_id, kind)
    else:
        reminders = _run(_list_reminders)
        if kind:
            reminders = [r for r in reminders if r.kind == kind]

    if not reminders:
        console.print("✅ No reminders found.")
        return
    console.print(create_reminders_table(reminders))


@main.command("count")
def count_command() -> None:
    """Show how many reminders are still upcoming."""
    active = _run(_count_active_reminders)
    stats_text = Text()
    stats_text.append("Active reminders: ", style="white")
    stats_text.append(f"{active}", style="bold green")
    console.print(Panel(stats_text, title="📊 Statistics", border_style="green"))


@main.command("task")
@click.argument("task_id")
@click.argument("title")
@click.argument("due_date")
@click.option("--lead", "lead_minutes", type=click.IntRange(min=0), help="Minutes before the due date.")
@click.option("--description", default="", help="Task description shown in the notification.")
def task_command(task_id: str, title: str, due_date: str, lead_minutes: t.Optional[int], description: str) -> None:
    """Remind about TASK_ID due at DUE_DATE (ISO format)."""
    _report_scheduled(
        _run(_schedule_task_reminder, task_id, title, due_date, lead_minutes, description),
        "Task reminder",
    )


@main.command("session")
@click.argument("session_id")
@click.argument("title")
@click.argument("session_start")
@click.option("--lead", "lead_minutes", type=click.IntRange(min=0), help="Minutes before the session starts.")
def session_command(session_id: str, title: str, session_start: str, lead_minutes: t.Optional[int]) -> None:
    """Remind about SESSION_ID starting at SESSION_START (ISO format)."""
    _report_scheduled(
        _run(_schedule_session_reminder, session_id, title, session_start, lead_minutes),
        "Session reminder",
    )


@main.command("custom")
@click.argument("title")
@click.argument("body")
@click.argument("trigger_time")
def custom_command(title: str, body: str, trigger_time: str) -> None:
    """Remind with TITLE and BODY at TRIGGER_TIME (ISO format)."""
    _report_scheduled(_run(_schedule_custom_reminder, title, body, trigger_time), "Custom reminder")


@main.command("cancel")
@click.argument("reminder_id", required=False)
@click.option("--subject", "subject_ref_id", help="Cancel every reminder for this task or session id.")
@click.option("--kind", type=KINDS, help="With --subject, only reminders of this kind.")
def cancel_command(reminder_id: t.Optional[str], subject_ref_id: t.Optional[str], kind: t.Optional[str]) -> None:
    """Cancel REMINDER_ID, or all reminders of --subject."""
    if subject_ref_id:
        _run(_cancel_reminders_for, subject_ref_id, kind)
        console.print(f"🗑️  Cancelled reminders for {subject_ref_id}")
    elif reminder_id:
        _run(_cancel_reminder, reminder_id)
        console.print(f"🗑️  Cancelled reminder {reminder_id}")
    else:
        raise click.UsageError("Give a REMINDER_ID or --subject.")


@main.command("reschedule")
@click.argument("reminder_id")
@click.argument("new_basis")
def reschedule_command(reminder_id: str, new_basis: str) -> None:
    """Move REMINDER_ID to NEW_BASIS (new due date, session start or trigger time)."""
    _report_scheduled(_run(_reschedule_reminder, reminder_id, new_basis), "Rescheduled reminder")


@main.command("prune")
def prune_command() -> None:
    """Remove reminders that have already fired."""
    removed = _run(_prune_fired_reminders)
    console.print(f"🧹 Removed {removed} fired reminder(s)")


@main.command("check-conflict")
@click.argument("sessions_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("day_of_week", type=click.IntRange(0, 6))
@click.argument("start_time")
@click.argument("end_time")
@click.option("--exclude", "exclude_session_id", help="Id of the session being edited.")
def check_conflict_command(
        sessions_file: str,
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_session_id: t.Optional[str],
) -> None:
    """Check START_TIME-END_TIME on DAY_OF_WEEK (0 = Sunday) against SESSIONS_FILE."""
    sessions = load_sessions(sessions_file)
    try:
        result = check_weekly_conflict(sessions, day_of_week, start_time, end_time, exclude_session_id)
    except ValueError as e:
        raise click.BadParameter(str(e))

    if result.has_conflict:
        console.print(f"[red]❌ {result.message}[/red]")
        raise SystemExit(1)
    console.print("[green]✅ No conflict[/green]")


if __name__ == "__main__":
    main()
