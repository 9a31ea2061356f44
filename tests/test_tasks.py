from datetime import date

import pytest

from bsos.exceptions import InvalidTransitionError
from bsos.models import CleaningTask, Property
from bsos.schemas import ApiCredentials
from bsos.services.status_automation import transition_task, validate_task_transition

TASKBIRD = "api.taskbird.com/v1"
TURNO = "api.turno.com/v1"


@pytest.fixture
def task(db):
    db.add(Property(id="airbnb-123", name="Apartamento Centro", platform="airbnb", platform_id="123"))
    task = CleaningTask(
        property_id="airbnb-123",
        type="checkout_cleaning",
        title="Limpeza Pós-Checkout",
        scheduled_date=date(2024, 1, 25),
        estimated_duration=120,
        priority="high",
        status="pending",
        checklist=[],
    )
    db.add(task)
    db.commit()
    return task


class TestStatusMachine:
    @pytest.mark.parametrize(
        "current,new,allowed",
        [
            ("pending", "assigned", True),
            ("pending", "in_progress", False),
            ("assigned", "pending", True),
            ("in_progress", "completed", True),
            ("completed", "cancelled", False),
            ("cancelled", "pending", False),
        ],
    )
    def test_transitions(self, current, new, allowed):
        assert validate_task_transition(current, new) is allowed

    def test_invalid_transition_raises(self):
        task = CleaningTask(id=1, status="completed")

        with pytest.raises(InvalidTransitionError):
            transition_task(task, "in_progress")

    def test_assignment_requires_cleaner(self):
        with pytest.raises(ValueError):
            transition_task(CleaningTask(id=1, status="pending"), "assigned")

    def test_cancel_releases_cleaner(self):
        task = CleaningTask(id=1, status="assigned", assigned_cleaner_id="c1", assigned_cleaner_name="Ana")

        transition_task(task, "cancelled")

        assert task.status == "cancelled"
        assert task.assigned_cleaner_id is None
        assert task.assigned_cleaner_name is None


class TestTasksApi:
    def test_list_and_filter(self, client, task):
        assert [t["id"] for t in client.get("/api/tasks").json()] == [task.id]
        assert client.get("/api/tasks", params={"date": "2024-01-25"}).json()[0]["type"] == "checkout_cleaning"
        assert client.get("/api/tasks", params={"date": "2024-01-26"}).json() == []
        assert client.get("/api/tasks", params={"status": "completed"}).json() == []

    def test_get_missing_task(self, client):
        response = client.get("/api/tasks/999")

        assert response.status_code == 404
        assert response.json() == {"error": "Task not found"}

    def test_status_change_follows_machine(self, client, task):
        response = client.patch(
            f"/api/tasks/{task.id}/status",
            json={"status": "assigned", "cleaner_id": "cleaner-001", "cleaner_name": "Maria Silva"},
        )

        assert response.status_code == 200
        assert response.json()["assigned_cleaner_id"] == "cleaner-001"
        assert client.patch(f"/api/tasks/{task.id}/status", json={"status": "in_progress"}).status_code == 200
        assert client.patch(f"/api/tasks/{task.id}/status", json={"status": "completed"}).json()["status"] == "completed"

    def test_illegal_transition_is_conflict(self, client, task):
        response = client.patch(f"/api/tasks/{task.id}/status", json={"status": "completed"})

        assert response.status_code == 409
        assert "pending" in response.json()["error"]

    def test_assignment_without_cleaner_is_bad_request(self, client, task):
        response = client.patch(f"/api/tasks/{task.id}/status", json={"status": "assigned"})

        assert response.status_code == 400

    def test_unknown_status_is_rejected(self, client, task):
        assert client.patch(f"/api/tasks/{task.id}/status", json={"status": "done"}).status_code == 422

    def test_status_change_is_mirrored_in_taskbird(self, client, db, task, orchestrator, fake_platforms):
        orchestrator.configure_taskbird(ApiCredentials(api_key="tb"))
        fake_platforms.add("PATCH", f"{TASKBIRD}/tasks/300", json={})
        task.external_id = "taskbird-300"
        db.commit()

        client.patch(f"/api/tasks/{task.id}/status", json={"status": "cancelled"})

        request = fake_platforms.calls("PATCH", f"{TASKBIRD}/tasks/300")[0]
        assert b"cancelled" in request.read()

    def test_auto_assign_without_services(self, client, task):
        response = client.post("/api/tasks/auto-assign")

        assert response.status_code == 400
        assert response.json() == {"error": "Serviços não configurados para atribuição automática"}

    def test_auto_assign_single_task(self, client, task, orchestrator, fake_platforms):
        orchestrator.configure_taskbird(ApiCredentials(api_key="tb"))
        orchestrator.configure_turno(ApiCredentials(api_key="turno"))
        fake_platforms.add(
            "GET",
            f"{TURNO}/availability",
            json={"available_staff": [{"id": "c9", "name": "Rita", "rating": 4.2, "available_from": "09:00"}]},
        )
        fake_platforms.add("POST", f"{TURNO}/shifts", status=201, json={})
        fake_platforms.add("POST", f"{TASKBIRD}/tasks", status=201, json={"id": 1})

        response = client.post(f"/api/tasks/{task.id}/auto-assign")

        assert response.status_code == 200
        assert response.json()["cleaner_id"] == "c9"
        assert response.json()["start_time"] == "09:00"
        assert client.get(f"/api/tasks/{task.id}").json()["status"] == "assigned"

    def test_turno_outage_is_reported_per_task(self, client, db, task, orchestrator, fake_platforms):
        orchestrator.configure_taskbird(ApiCredentials(api_key="tb"))
        orchestrator.configure_turno(ApiCredentials(api_key="turno"))
        fake_platforms.add("GET", f"{TURNO}/availability", status=503, json={})
        second = CleaningTask(
            property_id="airbnb-123",
            type="checkin_preparation",
            title="Preparação Check-in",
            scheduled_date=date(2024, 1, 26),
            estimated_duration=60,
            priority="medium",
            status="pending",
            checklist=[],
        )
        db.add(second)
        db.commit()

        response = client.post("/api/tasks/auto-assign")

        assert response.status_code == 200
        assert [r["reason"] for r in response.json()] == ["platform_error", "platform_error"]
        assert len(fake_platforms.calls("GET", f"{TURNO}/availability")) == 4
