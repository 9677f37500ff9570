"""Utility functions for the planner command line."""
import json
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from reminder_server.models import WeeklySession
from services.shared.models import Reminder

console = Console()


def format_datetime_human(value: datetime) -> str:
    """Convert a datetime to a short human-readable format (Mon 1/15 2:30 PM)."""
    return value.strftime("%a %-m/%-d %-I:%M %p")


def truncate_title(title: str, max_length: int = 45) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."


def create_reminders_table(reminders: list[Reminder], title: str = "⏰ Reminders") -> Table:
    """Create a table listing reminders in storage order."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Kind", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Fires", style="yellow")
    table.add_column("Lead", justify="right")
    table.add_column("Id", style="dim")

    for idx, reminder in enumerate(reminders, 1):
        table.add_row(
            str(idx),
            reminder.kind,
            truncate_title(reminder.title),
            format_datetime_human(reminder.trigger_time),
            f"{reminder.lead_minutes}m",
            reminder.id,
        )

    return table


def load_sessions(path: str) -> list[WeeklySession]:
    """Load weekly sessions from a JSON file.

    Args:
        path: File holding a JSON list of objects with id, day_of_week,
            start_time, end_time and title.

    Returns:
        The sessions in file order.

    Raises:
        SystemExit: If the file is not a JSON list of sessions.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return [
            WeeklySession(
                id=str(item["id"]),
                day_of_week=int(item["day_of_week"]),
                start_time=item["start_time"],
                end_time=item["end_time"],
                title=item.get("title", ""),
            )
            for item in raw
        ]
    except (ValueError, KeyError, TypeError) as e:
        console.print(f"[red]Error:[/red] Could not read sessions from '{path}': {e}")
        raise SystemExit(1)
