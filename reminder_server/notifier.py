# -*- coding: utf-8 -*-
"""
Notification primitive used by the reminder scheduler.

``Notifier`` is the contract the scheduler depends on. ``LocalNotifier`` is
an in-process implementation: it keeps a queue of pending notifications and
delivers the ones that are due when :meth:`LocalNotifier.deliver_due` runs,
either called directly or from :meth:`LocalNotifier.run_delivery_loop`.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
import uuid
from dataclasses import dataclass
from datetime import datetime

from reminder_server.models import NotificationPayload

logger = logging.getLogger(__name__)

DeliveryListener = t.Callable[[str, NotificationPayload], t.Awaitable[None]]


class Notifier(t.Protocol):
    """Schedule and cancel notifications, and manage the permission."""

    async def schedule(self, payload: NotificationPayload, trigger_at: datetime) -> str: ...

    async def cancel(self, notification_id: str) -> None: ...

    async def restore(self, notification_id: str, payload: NotificationPayload, trigger_at: datetime) -> None: ...

    async def request_permission(self) -> bool: ...

    async def is_permission_granted(self) -> bool: ...


@dataclass
class PendingNotification:
    """A notification waiting for its trigger time."""
    id: str
    payload: NotificationPayload
    trigger_at: datetime


class LocalNotifier:
    """In-process notification queue.

    :param permission_granted: Initial permission state.
    :param grant_on_request: Whether :meth:`request_permission` grants it.
    :param clock: Source of "now" for the delivery loop.
    """

    def __init__(
            self,
            permission_granted: bool = True,
            grant_on_request: bool = True,
            clock: t.Callable[[], datetime] = datetime.now,
    ) -> None:
        self._permission_granted = permission_granted
        self._grant_on_request = grant_on_request
        self._clock = clock
        self._pending: dict[str, PendingNotification] = {}
        self._listeners: list[DeliveryListener] = []

    async def schedule(self, payload: NotificationPayload, trigger_at: datetime) -> str:
        notification_id = uuid.uuid4().hex
        self._pending[notification_id] = PendingNotification(
            id=notification_id,
            payload=payload,
            trigger_at=trigger_at,
        )
        return notification_id

    async def restore(self, notification_id: str, payload: NotificationPayload, trigger_at: datetime) -> None:
        """Re-register a notification under an id it was given earlier.

        Used after a restart to reload pending notifications from storage.
        Restoring an id that is already pending replaces it.
        """
        self._pending[notification_id] = PendingNotification(
            id=notification_id,
            payload=payload,
            trigger_at=trigger_at,
        )

    async def cancel(self, notification_id: str) -> None:
        # Already delivered or never known: nothing to do
        self._pending.pop(notification_id, None)

    async def request_permission(self) -> bool:
        if self._grant_on_request:
            self._permission_granted = True
        return self._permission_granted

    async def is_permission_granted(self) -> bool:
        return self._permission_granted

    def pending(self) -> list[PendingNotification]:
        """Return pending notifications in scheduling order."""
        return list(self._pending.values())

    def on_delivered(self, listener: DeliveryListener) -> None:
        """Register a coroutine called with ``(id, payload)`` after delivery."""
        self._listeners.append(listener)

    async def deliver_due(self, now: t.Optional[datetime] = None) -> list[PendingNotification]:
        """Deliver every pending notification whose trigger time has come.

        :param now: Reference time; defaults to the notifier's clock.
        :return: The delivered notifications, earliest trigger first.
        """
        now = now or self._clock()
        due = sorted(
            (p for p in self._pending.values() if p.trigger_at <= now),
            key=lambda p: p.trigger_at,
        )
        for notification in due:
            del self._pending[notification.id]
            logger.info(
                "Delivering notification %s: %s - %s",
                notification.id, notification.payload.title, notification.payload.body,
            )
            for listener in self._listeners:
                try:
                    await listener(notification.id, notification.payload)
                except Exception:
                    logger.exception("Delivery listener failed for %s", notification.id)
        return due

    async def run_delivery_loop(self, stop_event: asyncio.Event, interval: float = 5.0) -> None:
        """Deliver due notifications every ``interval`` seconds until stopped."""
        logger.info("Notification delivery loop started")
        while not stop_event.is_set():
            await self.deliver_due()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Notification delivery loop stopped")
