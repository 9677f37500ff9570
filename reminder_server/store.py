# -*- coding: utf-8 -*-
"""
Persistence for scheduled reminders and notification settings.

The reminder list lives under a single key of a key-value primitive as one
serialized JSON array. Every mutation reads the whole list, changes it and
writes it back, so the key-value store stays the only source of truth.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
import typing as t
from pathlib import Path

from reminder_server.models import NotificationSettings, Reminder

logger = logging.getLogger(__name__)

REMINDERS_KEY = "scheduled_notifications"
SETTINGS_KEY = "notification_settings"


class StorageError(RuntimeError):
    """Raised when the key-value primitive fails or holds unreadable data."""


class KeyValueStore(t.Protocol):
    """Local persistence primitive: string values under string keys."""

    async def get(self, key: str) -> t.Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    """Key-value store kept in a dict; used by tests and ephemeral runs."""

    def __init__(self, initial: t.Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> t.Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """Key-value store backed by one JSON object on disk.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a half-written file behind. File I/O runs in a worker thread.
    """

    def __init__(self, path: t.Union[str, Path]) -> None:
        self.path = Path(path).expanduser()
        # Every key shares the file, so whole-file read-modify-write cycles
        # from different worker threads must not interleave
        self._write_lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            content = f.read()
        if not content.strip():
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _set(self, key: str, value: str) -> None:
        with self._write_lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    async def get(self, key: str) -> t.Optional[str]:
        data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)


class ReminderStore:
    """Reads and writes the reminder list through a key-value primitive."""

    def __init__(self, kv: KeyValueStore, key: str = REMINDERS_KEY) -> None:
        self.kv = kv
        self.key = key
        # Serialises read-modify-write cycles within one event loop
        self._lock = asyncio.Lock()

    async def _read(self) -> list[Reminder]:
        try:
            raw = await self.kv.get(self.key)
        except Exception as e:
            logger.exception("Error reading reminders from storage")
            raise StorageError(f"Error reading reminders: {e}") from e
        if not raw:
            return []
        try:
            return [Reminder.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Stored reminder list is not decodable: %s", e)
            raise StorageError(f"Stored reminders are corrupt: {e}") from e

    async def _write(self, reminders: list[Reminder]) -> None:
        try:
            payload = json.dumps([r.to_dict() for r in reminders], ensure_ascii=False)
            await self.kv.set(self.key, payload)
        except Exception as e:
            logger.exception("Error writing reminders to storage")
            raise StorageError(f"Error writing reminders: {e}") from e

    async def load(self) -> list[Reminder]:
        """Return every stored reminder in insertion order."""
        return await self._read()

    async def save(self, reminders: list[Reminder]) -> None:
        """Replace the stored list with ``reminders``."""
        async with self._lock:
            await self._write(reminders)

    async def find(self, reminder_id: str) -> t.Optional[Reminder]:
        for reminder in await self._read():
            if reminder.id == reminder_id:
                return reminder
        return None

    async def append(self, reminder: Reminder) -> None:
        async with self._lock:
            reminders = await self._read()
            reminders.append(reminder)
            await self._write(reminders)

    async def remove(self, reminder_id: str) -> bool:
        """Remove a reminder by id.

        :param reminder_id: Id of the reminder to drop.
        :return: True if a record was removed, False if none matched.
        """
        async with self._lock:
            reminders = await self._read()
            kept = [r for r in reminders if r.id != reminder_id]
            if len(kept) == len(reminders):
                return False
            await self._write(kept)
            return True

    async def remove_where(self, predicate: t.Callable[[Reminder], bool]) -> list[Reminder]:
        """Remove every reminder matching ``predicate`` and return them."""
        async with self._lock:
            reminders = await self._read()
            removed = [r for r in reminders if predicate(r)]
            if removed:
                await self._write([r for r in reminders if not predicate(r)])
            return removed


class SettingsStore:
    """Notification settings stored as one JSON object."""

    def __init__(self, kv: KeyValueStore, key: str = SETTINGS_KEY) -> None:
        self.kv = kv
        self.key = key

    async def load(self) -> NotificationSettings:
        try:
            raw = await self.kv.get(self.key)
        except Exception as e:
            logger.exception("Error reading notification settings")
            raise StorageError(f"Error reading settings: {e}") from e
        if not raw:
            return NotificationSettings()
        try:
            return NotificationSettings.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.error("Stored notification settings are not decodable: %s", e)
            raise StorageError(f"Stored settings are corrupt: {e}") from e

    async def save(self, settings: NotificationSettings) -> None:
        """Replace the stored settings."""
        try:
            await self.kv.set(self.key, json.dumps(settings.to_dict()))
        except Exception as e:
            logger.exception("Error writing notification settings")
            raise StorageError(f"Error writing settings: {e}") from e
