"""Tests for reminder persistence."""
import asyncio
import json
from dataclasses import replace
from datetime import datetime

import pytest

from reminder_server.models import NotificationSettings, Reminder, ReminderKind
from reminder_server.store import (
    REMINDERS_KEY,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    ReminderStore,
    SettingsStore,
    StorageError,
)


def make_reminders() -> list[Reminder]:
    scheduled_at = datetime(2025, 6, 10, 8, 0)
    return [
        Reminder(
            id="a1",
            kind=ReminderKind.TASK,
            subject_ref_id="42",
            title="Essay",
            body="Essay is due in 30 minutes",
            description="Chapter 3",
            target_time=datetime(2025, 6, 10, 9, 0),
            lead_minutes=30,
            scheduled_at=scheduled_at,
        ),
        Reminder(
            id="b2",
            kind=ReminderKind.SESSION,
            subject_ref_id="7",
            title="Math",
            body="Math starts in 15 minutes",
            target_time=datetime(2025, 6, 11, 10, 0),
            lead_minutes=15,
            scheduled_at=scheduled_at,
        ),
        Reminder(
            id="c3",
            kind=ReminderKind.CUSTOM,
            title="Stretch",
            body="Stand up for a minute",
            target_time=datetime(2025, 6, 10, 15, 0),
            lead_minutes=0,
            scheduled_at=scheduled_at,
            data={"source": "wellness", "repeat": 2},
        ),
    ]


@pytest.mark.asyncio
async def test_reminders_survive_a_reload(tmp_path) -> None:
    path = tmp_path / "reminders.json"
    reminders = make_reminders()

    await ReminderStore(JsonFileKeyValueStore(path)).save(reminders)
    reloaded = await ReminderStore(JsonFileKeyValueStore(path)).load()

    assert reloaded == reminders


@pytest.mark.asyncio
async def test_stored_format_is_a_json_list_under_one_key() -> None:
    kv = InMemoryKeyValueStore()
    await ReminderStore(kv).save(make_reminders())

    stored = json.loads(await kv.get(REMINDERS_KEY))
    assert [item["id"] for item in stored] == ["a1", "b2", "c3"]
    assert stored[0]["target_time"] == "2025-06-10T09:00:00"
    assert stored[2]["subject_ref_id"] is None


@pytest.mark.asyncio
async def test_append_find_and_remove() -> None:
    store = ReminderStore(InMemoryKeyValueStore())
    first, second, third = make_reminders()

    for reminder in (first, second, third):
        await store.append(reminder)

    assert (await store.find("b2")) == second
    assert await store.find("zz") is None
    assert await store.remove("b2") is True
    assert await store.remove("b2") is False
    assert [r.id for r in await store.load()] == ["a1", "c3"]


@pytest.mark.asyncio
async def test_remove_where_returns_removed_records() -> None:
    store = ReminderStore(InMemoryKeyValueStore())
    await store.save(make_reminders())

    removed = await store.remove_where(lambda r: r.kind is not ReminderKind.TASK)

    assert [r.id for r in removed] == ["b2", "c3"]
    assert [r.id for r in await store.load()] == ["a1"]


@pytest.mark.asyncio
async def test_empty_store_loads_as_empty_list(tmp_path) -> None:
    assert await ReminderStore(InMemoryKeyValueStore()).load() == []
    assert await ReminderStore(JsonFileKeyValueStore(tmp_path / "missing.json")).load() == []


@pytest.mark.asyncio
async def test_corrupt_reminders_raise_storage_error() -> None:
    store = ReminderStore(InMemoryKeyValueStore({REMINDERS_KEY: "not json"}))

    with pytest.raises(StorageError):
        await store.load()


@pytest.mark.asyncio
async def test_unreadable_file_raises_storage_error(tmp_path) -> None:
    path = tmp_path / "reminders.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(StorageError):
        await ReminderStore(JsonFileKeyValueStore(path)).load()


@pytest.mark.asyncio
async def test_file_store_keeps_other_keys(tmp_path) -> None:
    kv = JsonFileKeyValueStore(tmp_path / "nested" / "store.json")

    await kv.set("one", "1")
    await kv.set("two", "2")

    assert await kv.get("one") == "1"
    assert await kv.get("two") == "2"
    assert await kv.get("three") is None


@pytest.mark.asyncio
async def test_settings_default_and_round_trip() -> None:
    store = SettingsStore(InMemoryKeyValueStore())

    assert await store.load() == NotificationSettings()

    await store.save(NotificationSettings(task_reminders=False, badge_enabled=False))
    loaded = await store.load()
    assert loaded.task_reminders is False
    assert loaded.badge_enabled is False
    assert loaded.enabled is True


@pytest.mark.asyncio
async def test_concurrent_writes_to_one_file_keep_every_reminder(tmp_path) -> None:
    kv = JsonFileKeyValueStore(tmp_path / "store.json")
    reminders = ReminderStore(kv)
    settings = SettingsStore(kv)
    template = make_reminders()[0]

    for i in range(50):
        await asyncio.gather(
            reminders.append(replace(template, id=f"r{i}")),
            settings.save(NotificationSettings(sound_enabled=bool(i % 2))),
        )

    stored = await ReminderStore(JsonFileKeyValueStore(tmp_path / "store.json")).load()
    assert [r.id for r in stored] == [f"r{i}" for i in range(50)]
    assert (await settings.load()).sound_enabled is True
