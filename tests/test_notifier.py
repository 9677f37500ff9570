"""Tests for the in-process notification queue."""
import asyncio
from datetime import datetime, timedelta

import pytest

from reminder_server.models import NotificationPayload
from reminder_server.notifier import LocalNotifier


NOW = datetime(2025, 6, 10, 8, 0)


@pytest.mark.asyncio
async def test_schedule_returns_unique_ids() -> None:
    notifier = LocalNotifier()
    payload = NotificationPayload(title="t", body="b")

    ids = {await notifier.schedule(payload, NOW) for _ in range(5)}

    assert len(ids) == 5
    assert len(notifier.pending()) == 5


@pytest.mark.asyncio
async def test_cancel_unknown_id_does_nothing() -> None:
    notifier = LocalNotifier()
    await notifier.schedule(NotificationPayload(title="t", body="b"), NOW)

    await notifier.cancel("unknown")

    assert len(notifier.pending()) == 1


@pytest.mark.asyncio
async def test_permission_request() -> None:
    refused = LocalNotifier(permission_granted=False, grant_on_request=False)
    assert await refused.request_permission() is False
    assert await refused.is_permission_granted() is False

    granted = LocalNotifier(permission_granted=False)
    assert await granted.request_permission() is True
    assert await granted.is_permission_granted() is True


@pytest.mark.asyncio
async def test_deliver_due_in_trigger_order_and_notifies_listeners() -> None:
    notifier = LocalNotifier(clock=lambda: NOW)
    delivered: list[str] = []

    async def listener(notification_id: str, payload: NotificationPayload) -> None:
        delivered.append(payload.title)

    notifier.on_delivered(listener)
    await notifier.schedule(NotificationPayload(title="later", body=""), NOW - timedelta(minutes=1))
    await notifier.schedule(NotificationPayload(title="future", body=""), NOW + timedelta(minutes=1))
    await notifier.schedule(NotificationPayload(title="earlier", body=""), NOW - timedelta(minutes=5))

    due = await notifier.deliver_due()

    assert [n.payload.title for n in due] == ["earlier", "later"]
    assert delivered == ["earlier", "later"]
    assert [n.payload.title for n in notifier.pending()] == ["future"]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_delivery() -> None:
    notifier = LocalNotifier(clock=lambda: NOW)
    seen: list[str] = []

    async def broken(notification_id: str, payload: NotificationPayload) -> None:
        raise RuntimeError("boom")

    async def recorder(notification_id: str, payload: NotificationPayload) -> None:
        seen.append(notification_id)

    notifier.on_delivered(broken)
    notifier.on_delivered(recorder)
    notification_id = await notifier.schedule(NotificationPayload(title="t", body=""), NOW)

    await notifier.deliver_due()

    assert seen == [notification_id]


@pytest.mark.asyncio
async def test_delivery_loop_stops_on_event() -> None:
    notifier = LocalNotifier(clock=lambda: NOW)
    await notifier.schedule(NotificationPayload(title="t", body=""), NOW)
    stop_event = asyncio.Event()

    task = asyncio.create_task(notifier.run_delivery_loop(stop_event, interval=0.01))
    await asyncio.sleep(0.05)
    stop_event.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert notifier.pending() == []


@pytest.mark.asyncio
async def test_restore_keeps_the_original_id() -> None:
    notifier = LocalNotifier(clock=lambda: NOW)
    delivered: list[str] = []

    async def listener(notification_id: str, payload: NotificationPayload) -> None:
        delivered.append(notification_id)

    notifier.on_delivered(listener)
    await notifier.restore("saved-id", NotificationPayload(title="t", body=""), NOW - timedelta(minutes=1))

    await notifier.deliver_due()

    assert delivered == ["saved-id"]
