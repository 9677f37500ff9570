"""Tests for the reminder REST service."""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from reminder_server.notifier import LocalNotifier
from reminder_server.scheduler import ReminderScheduler
from reminder_server.store import InMemoryKeyValueStore, ReminderStore, SettingsStore
from services.reminder_service.app import app, get_scheduler


NOW = datetime(2025, 6, 10, 8, 0)


@pytest.fixture
def service_scheduler() -> ReminderScheduler:
    kv = InMemoryKeyValueStore()
    return ReminderScheduler(
        notifier=LocalNotifier(clock=lambda: NOW),
        store=ReminderStore(kv),
        settings_store=SettingsStore(kv),
        clock=lambda: NOW,
    )


@pytest.fixture
def client(service_scheduler):
    app.dependency_overrides[get_scheduler] = lambda: service_scheduler
    # No context manager: the lifespan (file store, delivery loop) is not run
    yield TestClient(app)
    app.dependency_overrides.clear()


def schedule_task(client, task_id="1", due="2025-06-10T09:00:00", lead=30):
    return client.post(
        "/reminders/task",
        json={"task_id": task_id, "title": "Essay", "due_date": due, "lead_minutes": lead},
    )


class TestScheduling:
    """Tests for the scheduling endpoints."""

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "reminder-service"

    def test_schedule_task_and_list(self, client):
        resp = schedule_task(client)
        assert resp.status_code == 200
        reminder_id = resp.json()["id"]

        resp = client.get("/reminders/subject/1")
        assert resp.status_code == 200
        data = resp.json()
        assert [r["id"] for r in data] == [reminder_id]
        assert data[0]["kind"] == "task"
        assert data[0]["trigger_time"] == "2025-06-10T08:30:00"

    def test_past_trigger_is_422_with_reason(self, client):
        resp = schedule_task(client, lead=90)
        assert resp.status_code == 422
        assert "past_trigger" in resp.json()["detail"]

    def test_negative_lead_is_rejected_by_validation(self, client):
        resp = schedule_task(client, lead=-1)
        assert resp.status_code == 422
        assert isinstance(resp.json()["detail"], list)

    def test_schedule_session_with_default_lead(self, client):
        resp = client.post(
            "/reminders/session",
            json={"session_id": "s1", "title": "Math", "session_start": "2025-06-10T09:00:00"},
        )
        assert resp.status_code == 200

        (reminder,) = client.get("/reminders").json()
        assert reminder["lead_minutes"] == 15

    def test_schedule_custom(self, client):
        resp = client.post(
            "/reminders/custom",
            json={"title": "Stretch", "body": "Stand up", "trigger_time": "2025-06-10T10:00:00", "data": {"n": 1}},
        )
        assert resp.status_code == 200

        (reminder,) = client.get("/reminders").json()
        assert reminder["kind"] == "custom"
        assert reminder["data"] == {"n": 1}

    def test_count_active(self, client):
        schedule_task(client, task_id="1")
        schedule_task(client, task_id="2")
        resp = client.get("/reminders/count")
        assert resp.json() == {"active": 2}


class TestCancelAndReschedule:
    """Tests for cancellation, rescheduling and pruning."""

    def test_cancel_unknown_is_ok(self, client):
        schedule_task(client)
        resp = client.delete("/reminders/unknown")
        assert resp.status_code == 200
        assert len(client.get("/reminders").json()) == 1

    def test_cancel_by_subject_and_kind(self, client):
        schedule_task(client, task_id="9")
        client.post(
            "/reminders/session",
            json={"session_id": "9", "title": "Math", "session_start": "2025-06-10T09:00:00"},
        )

        resp = client.delete("/reminders/subject/9", params={"kind": "task"})
        assert resp.status_code == 200

        remaining = client.get("/reminders/subject/9").json()
        assert [r["kind"] for r in remaining] == ["session"]

    def test_reschedule(self, client):
        old_id = schedule_task(client).json()["id"]

        resp = client.post(f"/reminders/{old_id}/reschedule", json={"new_basis": "2025-06-11T09:00:00"})
        assert resp.status_code == 200
        new_id = resp.json()["id"]
        assert new_id != old_id

        (reminder,) = client.get("/reminders").json()
        assert reminder["id"] == new_id
        assert reminder["target_time"] == "2025-06-11T09:00:00"
        assert reminder["lead_minutes"] == 30

    def test_reschedule_unknown_is_404(self, client):
        resp = client.post("/reminders/nope/reschedule", json={"new_basis": "2025-06-11T09:00:00"})
        assert resp.status_code == 404

    def test_prune(self, client, service_scheduler):
        schedule_task(client)
        service_scheduler.clock = lambda: datetime(2025, 6, 10, 8, 45)

        resp = client.post("/reminders/prune")
        assert resp.json() == {"removed": 1}
        assert client.get("/reminders").json() == []


class TestSettings:
    """Tests for notification settings."""

    def test_defaults(self, client):
        resp = client.get("/settings")
        assert resp.status_code == 200
        assert all(resp.json().values())

    def test_partial_update_blocks_kind(self, client):
        resp = client.patch("/settings", json={"task_reminders": False})
        assert resp.status_code == 200
        assert resp.json()["task_reminders"] is False
        assert resp.json()["schedule_reminders"] is True

        resp = schedule_task(client)
        assert resp.status_code == 422
        assert "disabled" in resp.json()["detail"]


class TestConflicts:
    """Tests for POST /schedule/conflicts."""

    SESSIONS = [
        {"id": "1", "day_of_week": 1, "start_time": "09:00", "end_time": "10:00", "title": "Math"},
        {"id": "2", "day_of_week": 2, "start_time": "09:00", "end_time": "10:00", "title": "Art"},
    ]

    def test_overlap(self, client):
        resp = client.post(
            "/schedule/conflicts",
            json={"sessions": self.SESSIONS, "day_of_week": 1, "start_time": "09:30", "end_time": "10:30"},
        )
        data = resp.json()
        assert data["has_conflict"] is True
        assert "Math" in data["message"]
        assert "9:00 AM - 10:00 AM" in data["message"]
        assert data["conflicting_session"]["id"] == "1"

    def test_boundary_touch(self, client):
        resp = client.post(
            "/schedule/conflicts",
            json={"sessions": self.SESSIONS, "day_of_week": 1, "start_time": "10:00", "end_time": "11:00"},
        )
        assert resp.json()["has_conflict"] is False

    def test_bad_time_is_422(self, client):
        resp = client.post(
            "/schedule/conflicts",
            json={"sessions": self.SESSIONS, "day_of_week": 1, "start_time": "25:00", "end_time": "26:00"},
        )
        assert resp.status_code == 422
