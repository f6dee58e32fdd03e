"""HTTP tests for the /bookings and /automation endpoints."""

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from bookingcore.database import get_db
from bookingcore.main import app
from bookingcore.services.automation_service import AutomationCycle
from bookingcore.services.notification_service import get_dispatcher
from bookingcore.services.scheduler import AutomationScheduler
from tests.conftest import (
    MONDAY,
    make_availability,
    make_booking,
    make_form_submission,
    make_form_template,
    make_service,
    make_workspace,
)


@pytest.fixture
def client(session_factory, dispatcher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.state.automation_scheduler = AutomationScheduler(
        AutomationCycle(session_factory, dispatcher),
        settings=SimpleNamespace(AUTOMATION_ENABLED=False, AUTOMATION_INTERVAL_MS=60000),
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


class TestSlots:
    def test_available_slots(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        make_availability(db, workspace, day_of_week=1)
        make_booking(db, workspace, svc, start_time="10:00", end_time="10:30")

        response = client.get(
            "/bookings/available-slots",
            params={"workspaceSlug": "acme", "serviceTypeId": svc.id, "date": MONDAY.isoformat()},
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["slots"]) == 15
        assert body["slots"][0] == {"startTime": "09:00", "endTime": "09:30", "available": True}

    def test_unknown_workspace_is_404(self, client):
        response = client.get(
            "/bookings/available-slots",
            params={"workspaceSlug": "nope", "serviceTypeId": 1, "date": MONDAY.isoformat()},
        )
        assert response.status_code == 404

    def test_malformed_stored_availability_is_422(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        make_availability(db, workspace, day_of_week=1, intervals=[("9am", "17:00")])

        response = client.get(
            "/bookings/available-slots",
            params={"workspaceSlug": "acme", "serviceTypeId": svc.id, "date": MONDAY.isoformat()},
        )
        assert response.status_code == 422


class TestBookings:
    def _payload(self, service_id, start="10:00"):
        return {
            "workspaceSlug": "acme",
            "serviceTypeId": service_id,
            "bookingDate": MONDAY.isoformat(),
            "startTime": start,
            "contactInfo": {"name": "Jane Doe", "email": "Jane@Example.com"},
        }

    def test_create_and_conflict(self, client, db, dispatcher):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)

        created = client.post("/bookings/public", json=self._payload(svc.id))
        duplicate = client.post("/bookings/public", json=self._payload(svc.id))

        assert created.status_code == 201
        assert created.json()["endTime"] == "10:30"
        assert created.json()["contactEmail"] == "jane@example.com"
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "This time slot is no longer available"
        assert dispatcher.kinds() == ["booking.confirmation"]

    def test_invalid_start_time_is_422(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        response = client.post("/bookings/public", json=self._payload(svc.id, start="10:5"))
        assert response.status_code == 422

    def test_check(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        booking = make_booking(db, workspace, svc, start_time="10:00", end_time="10:30")
        body = {"workspaceId": workspace.id, "bookingDate": MONDAY.isoformat(), "startTime": "10:00", "endTime": "10:30"}

        taken = client.post("/bookings/check", json=body)
        own = client.post("/bookings/check", json={**body, "excludeBookingId": booking.id})

        assert taken.json() == {"available": False}
        assert own.json() == {"available": True}

    def test_reschedule_conflict_and_success(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        make_booking(db, workspace, svc, start_time="10:00", end_time="10:30")
        mine = make_booking(db, workspace, svc, start_time="12:00", end_time="12:30")

        blocked = client.put(f"/bookings/{mine.id}/reschedule", json={"bookingDate": MONDAY.isoformat(), "startTime": "10:00"})
        moved = client.put(f"/bookings/{mine.id}/reschedule", json={"bookingDate": MONDAY.isoformat(), "startTime": "13:00"})

        assert blocked.status_code == 409
        assert moved.status_code == 200
        assert moved.json()["startTime"] == "13:00"

    def test_status_list_stats_and_cancel(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        first = make_booking(db, workspace, svc, start_time="09:00", end_time="09:30")
        second = make_booking(db, workspace, svc, start_time="10:00", end_time="10:30")

        assert client.put(f"/bookings/{first.id}/status", json={"status": "completed"}).status_code == 200
        assert client.put(f"/bookings/{first.id}/status", json={"status": "archived"}).status_code == 422
        assert client.delete(f"/bookings/{second.id}").json() == {"message": "Booking cancelled"}

        listed = client.get(f"/bookings/workspace/{workspace.id}", params={"status": "cancelled"}).json()
        stats = client.get(f"/bookings/workspace/{workspace.id}/stats").json()

        assert [b["id"] for b in listed] == [second.id]
        assert stats["total"] == 2
        assert stats["completed"] == 1
        assert stats["cancelled"] == 1

    def test_get_unknown_booking_is_404(self, client):
        assert client.get("/bookings/9999").status_code == 404


class TestAvailability:
    def test_put_and_get(self, client, db):
        workspace = make_workspace(db)
        body = {
            "availability": [
                {"dayOfWeek": 1, "timeSlots": [{"startTime": "09:00", "endTime": "12:00"}, {"startTime": "13:00", "endTime": "17:00"}]},
                {"dayOfWeek": 0, "isAvailable": False},
            ]
        }

        put = client.put(f"/bookings/availability/{workspace.id}", json=body)
        get = client.get(f"/bookings/availability/{workspace.id}")

        assert put.status_code == 200
        assert [d["dayOfWeek"] for d in get.json()] == [0, 1]
        assert len(get.json()[1]["timeSlots"]) == 2

    @pytest.mark.parametrize(
        "slots",
        [
            [{"startTime": "17:00", "endTime": "09:00"}],
            [{"startTime": "09:00", "endTime": "12:00"}, {"startTime": "11:00", "endTime": "13:00"}],
            [{"startTime": "9:00", "endTime": "12:00"}],
        ],
    )
    def test_malformed_rejected_at_write_time(self, client, db, slots):
        workspace = make_workspace(db)
        response = client.put(
            f"/bookings/availability/{workspace.id}",
            json={"availability": [{"dayOfWeek": 1, "timeSlots": slots}]},
        )
        assert response.status_code == 422


class TestForms:
    def test_complete_form(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        booking = make_booking(db, workspace, svc)
        template = make_form_template(db, workspace, service_ids=[svc.id])
        submission = make_form_submission(db, booking, template, due_at=datetime(2024, 1, 1, 8, 0))

        response = client.post(f"/bookings/forms/{submission.id}/complete", json={"answers": {"allergies": "none"}})

        assert response.status_code == 200
        assert response.json()["status"] == "completed"


class TestAutomation:
    def test_manual_run_and_status(self, client, db):
        workspace = make_workspace(db)
        svc = make_service(db, workspace)
        make_booking(db, workspace, svc)

        run = client.post("/automation/run")
        status = client.get("/automation/status")

        assert run.status_code == 200
        assert run.json()["ran"] is True
        assert run.json()["summary"]["workspaces_processed"] == 1
        assert status.json()["running"] is False
        assert status.json()["lastSummary"] is not None

    def test_failed_manual_run_reports_error(self, client):
        class FailingCycle:
            async def run(self, now=None):
                raise RuntimeError("smtp down")

        scheduler = AutomationScheduler(
            FailingCycle(),
            settings=SimpleNamespace(AUTOMATION_ENABLED=False, AUTOMATION_INTERVAL_MS=60000),
        )
        app.state.automation_scheduler = scheduler

        response = client.post("/automation/run")

        assert response.status_code == 500
        assert response.json() == {"detail": "Automation cycle failed", "ran": True, "error": "smtp down"}
        assert client.get("/automation/status").json()["lastSummary"] is None
