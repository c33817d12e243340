"""Tests for the scan HTTP routes."""

from scanjobs.config import settings
from scanjobs.errors import AlreadyRunning


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_status_idle(client):
    response = client.get("/scans/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "idle"
    assert body["lastRun"] == {}
    assert body["record_types"] == ["post", "page"]


def test_start_scan_queues_job(client, records):
    response = client.post(
        "/scans/run",
        json={"record_types": ["post", "page"], "batch_size": 25},
        headers={"X-Actor": "alice"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "queued"
    assert body["origin"] == "admin"
    assert body["initiated_by"] == "alice"
    assert body["batch_size"] == 25
    assert body["total"] == 5
    assert body["remaining"] == 5
    assert "queue" not in body

    status = client.get("/scans/status").json()
    assert status["id"] == body["id"]


def test_start_scan_defaults(client, records):
    response = client.post("/scans/run", json={})

    body = response.json()
    assert response.status_code == 200
    assert body["record_types"] == ["post", "page"]
    assert body["batch_size"] == 50
    assert body["initiated_by"] == "admin"


def test_second_start_conflicts(client, records):
    client.post("/scans/run", json={"record_types": ["post"]})

    response = client.post("/scans/run", json={"record_types": ["post"]})

    assert response.status_code == 409
    assert response.json()["code"] == "scanjobs_scan_running"
    assert response.json()["message"]


def test_no_valid_types(client, repository, records):
    response = client.post("/scans/run", json={"record_types": ["nope"]})

    assert response.status_code == 400
    assert response.json()["code"] == "scanjobs_scan_no_types"
    assert repository.load() is None


def test_clear_job(client, tasks, records):
    client.post("/scans/run", json={"record_types": ["post"]})

    response = client.delete("/scans/job")

    assert response.status_code == 200
    assert response.json() == {"message": "Scan job cleared"}
    assert client.get("/scans/status").json()["status"] == "idle"


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "secret")

    response = client.get("/scans/status")
    assert response.status_code == 401
    assert response.json()["code"] == "rest_forbidden"

    response = client.get("/scans/status", headers={"X-API-Key": "secret"})
    assert response.status_code == 200


def test_error_message_defaults_and_overrides():
    assert AlreadyRunning().to_dict() == {
        "code": "scanjobs_scan_running",
        "message": AlreadyRunning.default_message,
        "data": {"status": 409},
    }
    assert AlreadyRunning("busy").message == "busy"
