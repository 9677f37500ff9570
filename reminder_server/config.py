# -*- coding: utf-8 -*-
"""Environment-driven configuration for the reminder scheduler."""
from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_STORE_PATH = "~/.student_planner/reminders.json"


@dataclass
class SchedulerConfig:
    """Defaults applied when callers omit them."""
    task_lead_minutes: int = 30
    session_lead_minutes: int = 15
    store_path: str = DEFAULT_STORE_PATH
    delivery_interval: float = 5.0  # seconds between delivery checks
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Build a config from ``REMINDER_*`` environment variables.

        :raises ValueError: If a numeric variable cannot be parsed.
        """
        return cls(
            task_lead_minutes=int(os.getenv("REMINDER_TASK_LEAD_MINUTES", "30")),
            session_lead_minutes=int(os.getenv("REMINDER_SESSION_LEAD_MINUTES", "15")),
            store_path=os.getenv("REMINDER_STORE_PATH", DEFAULT_STORE_PATH),
            delivery_interval=float(os.getenv("REMINDER_DELIVERY_INTERVAL", "5.0")),
            log_level=os.getenv("REMINDER_LOG_LEVEL", "INFO").upper(),
        )
