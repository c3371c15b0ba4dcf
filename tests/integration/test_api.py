"""
Integration tests for the HTTP API against an in-memory MongoDB.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import AutoReconnect

from app import app
from core.database.connection import get_database


@pytest.fixture
def client():
    database = AsyncMongoMockClient()["cortex_api_test"]
    app.dependency_overrides[get_database] = lambda: database
    # Not used as a context manager, so startup does not connect to a real MongoDB
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_root_login_policy(client):
    response = client.post("/api/events/policies", json={
        "name": "Root Login",
        "rule": {"field": "user", "operator": "equals", "value": "root"},
        "isActive": True,
        "mitreTactic": "Initial Access",
        "mitreTechniqueId": "T1078",
        "mitreTechniqueName": "Valid Accounts",
    })
    assert response.status_code == 200
    return response.json()


def ingest(client, **overrides):
    payload = {"type": "SSH_LOGIN", "source": "vpn-1", "details": {"service": "ssh", "user": "root"}}
    payload.update(overrides)
    return client.post("/api/events/ingest", json=payload)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ingest_safe_event(client):
    response = ingest(client, details={"user": "alice"})

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "ok"
    assert body["analysis"] == "SAFE"
    assert body["eventId"]


def test_ingest_malicious_event(client):
    create_root_login_policy(client)

    response = ingest(client)

    assert response.status_code == 201
    body = response.json()
    assert set(body) == {"status", "eventId", "analysis"}
    assert body["analysis"] == "MALICIOUS"

    events = client.get("/api/events").json()
    assert events[0]["id"] == body["eventId"]
    assert events[0]["riskScore"] == 100
    assert events[0]["status"] == "MALICIOUS"


def test_ingest_rejects_invalid_event(client):
    response = ingest(client, source="")

    assert response.status_code == 400
    assert "error" in response.json()
    assert client.get("/api/events").json() == []


def test_ingest_rejects_non_object_body(client):
    response = client.post("/api/events/ingest", json=["SSH_LOGIN"])

    assert response.status_code == 400
    assert "error" in response.json()


def test_ingest_storage_failure(client):
    engine = MagicMock()
    engine.ingest = AsyncMock(side_effect=AutoReconnect("connection reset"))

    with patch("core.services.event_processor.get_detection_engine", return_value=engine):
        response = ingest(client)

    assert response.status_code == 500
    assert response.json() == {"error": "Ingestion failed"}


def test_alerts_carry_event_and_incident(client):
    create_root_login_policy(client)
    event_id = ingest(client).json()["eventId"]

    alerts = client.get("/api/events/alerts").json()

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert["eventId"] == event_id
    assert alert["severity"] == "CRITICAL"
    assert alert["status"] == "OPEN"
    assert alert["message"] == "Detected Root Login from vpn-1"
    assert alert["mitreTechniqueId"] == "T1078"
    assert alert["aiSummary"]
    assert alert["event"]["source"] == "vpn-1"
    assert alert["incident"]["id"] == alert["incidentId"]
    assert alert["incident"]["summary"] == "Security Incident involving vpn-1. Grouped via T1078."


def test_update_alert_status(client):
    create_root_login_policy(client)
    ingest(client)
    alert_id = client.get("/api/events/alerts").json()[0]["id"]

    response = client.patch(f"/api/events/alerts/{alert_id}/status", json={"status": "ACKNOWLEDGED"})
    assert response.status_code == 200
    assert response.json()["status"] == "ACKNOWLEDGED"

    response = client.patch(f"/api/events/alerts/{alert_id}/status", json={"status": "IGNORED"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid status"}

    response = client.patch("/api/events/alerts/65a4f0c2e4b0a1b2c3d4e5f6/status", json={"status": "RESOLVED"})
    assert response.status_code == 404
    assert response.json() == {"error": "Alert not found"}


def test_policy_crud(client):
    created = create_root_login_policy(client)
    assert created["isActive"] is True
    assert created["mitreTechniqueName"] == "Valid Accounts"

    duplicate = client.post("/api/events/policies", json={
        "name": "Root Login",
        "rule": {"field": "user", "operator": "equals", "value": "root"},
    })
    assert duplicate.status_code == 400

    updated = client.put(f"/api/events/policies/{created['id']}", json={"isActive": False})
    assert updated.status_code == 200
    assert updated.json()["isActive"] is False

    fetched = client.get(f"/api/events/policies/{created['id']}").json()
    assert fetched["isActive"] is False
    assert [p["name"] for p in client.get("/api/events/policies").json()] == ["Root Login"]

    # Deactivated, so the same event is now safe
    assert ingest(client).json()["analysis"] == "SAFE"


def test_incident_details_timeline(client):
    create_root_login_policy(client)
    first = ingest(client).json()
    second = ingest(client).json()

    incidents = client.get("/api/events/incidents").json()
    assert len(incidents) == 1
    incident = incidents[0]
    assert len(incident["alertIds"]) == 2
    assert [alert["eventId"] for alert in incident["alerts"]] == [first["eventId"], second["eventId"]]

    details = client.get(f"/api/events/incidents/{incident['id']}").json()
    timeline = details["timeline"]
    assert len(timeline) == 4
    assert {entry["type"] for entry in timeline} == {"ALERT", "EVENT"}
    assert [entry["timestamp"] for entry in timeline] == sorted(entry["timestamp"] for entry in timeline)


def test_unknown_incident(client):
    response = client.get("/api/events/incidents/65a4f0c2e4b0a1b2c3d4e5f6")

    assert response.status_code == 404
    assert response.json() == {"error": "Incident not found"}


def test_dashboard_stats(client):
    create_root_login_policy(client)
    ingest(client)
    ingest(client, source="ws-1", details={"user": "alice"})

    body = client.get("/api/dashboard/stats").json()

    assert body["stats"] == {
        "totalEvents": 2,
        "activeAlerts": 1,
        "activeSources": 2,
        "activePolicies": 1,
    }
    assert len(body["recentEvents"]) == 2
    assert "details" not in body["recentEvents"][0]
    assert len(body["eventsByHour"]) == 24
    assert sum(bucket["count"] for bucket in body["eventsByHour"]) == 2


def test_lifespan_connects_seeds_and_closes():
    database = AsyncMongoMockClient()["cortex_lifespan_test"]
    connect = AsyncMock()
    close = AsyncMock()

    with patch("app.connect_to_mongo", connect), \
            patch("app.close_mongo_connection", close), \
            patch("app.get_database", AsyncMock(return_value=database)):
        app.dependency_overrides[get_database] = lambda: database
        try:
            with TestClient(app) as client:
                connect.assert_awaited_once()
                close.assert_not_awaited()
                names = [policy["name"] for policy in client.get("/api/events/policies").json()]
        finally:
            app.dependency_overrides.clear()

    close.assert_awaited_once()
    assert "Detect PowerShell Execution" in names
    assert len(names) == 6
