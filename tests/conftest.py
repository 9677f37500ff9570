"""Shared fixtures for reminder scheduler tests."""
from datetime import datetime, timedelta

import pytest

from reminder_server.config import SchedulerConfig
from reminder_server.notifier import LocalNotifier
from reminder_server.scheduler import ReminderScheduler
from reminder_server.store import InMemoryKeyValueStore, ReminderStore, SettingsStore


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 10, 8, 0))


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def notifier(clock: FakeClock) -> LocalNotifier:
    return LocalNotifier(clock=clock)


@pytest.fixture
def scheduler(notifier: LocalNotifier, kv: InMemoryKeyValueStore, clock: FakeClock) -> ReminderScheduler:
    sched = ReminderScheduler(
        notifier=notifier,
        store=ReminderStore(kv),
        settings_store=SettingsStore(kv),
        config=SchedulerConfig(),
        clock=clock,
    )
    notifier.on_delivered(sched.handle_delivered)
    return sched
