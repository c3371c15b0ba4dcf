"""
Unit tests for the ingestion pipeline: classification, alerting and storage
failure handling.
"""
import asyncio
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from pymongo.errors import AutoReconnect

from core.database.repositories.alert_repository import AlertRepository
from core.database.repositories.baseline_repository import BaselineRepository
from core.database.repositories.event_repository import EventRepository
from core.database.repositories.incident_repository import IncidentRepository
from core.detection.anomaly_detector import PROCESS_SPAWN
from core.detection.engine import DetectionEngine
from core.exceptions import EventValidationError
from core.models.schema.baseline import KNOWN_PROCESSES, EVENT_VOLUME
from core.models.schema.common import Severity
from core.models.schema.event import EventIngest, EventStatus
from core.services.event_processor import process_event, validate_event
from tests.conftest import add_policy


@pytest.fixture
def engine(mongo_db, clock):
    return DetectionEngine.from_database(mongo_db, clock=clock)


def event(type="SSH_LOGIN", source="vpn-1", details=None, timestamp=None):
    return EventIngest(type=type, source=source, details=details or {}, timestamp=timestamp)


@pytest.mark.asyncio
async def test_benign_event_is_safe(engine, mongo_db):
    result = await engine.ingest(event(details={"user": "alice"}))

    assert result.analysis == EventStatus.SAFE
    assert result.risk_score == 0
    assert result.alert_id is None
    stored = await EventRepository(mongo_db).get_event(result.event_id)
    assert stored.status == EventStatus.SAFE
    assert stored.details == {"user": "alice"}
    assert await AlertRepository(mongo_db).list_alerts() == []


@pytest.mark.asyncio
async def test_policy_match_raises_alert_and_incident(engine, mongo_db):
    await add_policy(
        mongo_db, "Root Login", "user", "equals", "root",
        mitre_tactic="Initial Access", mitre_technique_id="T1078", mitre_technique_name="Valid Accounts",
    )

    result = await engine.ingest(event(details={"service": "ssh", "user": "root"}))

    assert result.analysis == EventStatus.MALICIOUS
    assert result.risk_score == 100
    stored = await EventRepository(mongo_db).get_event(result.event_id)
    assert stored.risk_score == 100

    alert = await AlertRepository(mongo_db).get_alert(result.alert_id)
    assert alert.event_id == result.event_id
    assert alert.severity == Severity.CRITICAL
    assert alert.message == "Detected Root Login from vpn-1"
    assert alert.mitre_tactic == "Initial Access"
    assert alert.mitre_technique_id == "T1078"
    assert alert.mitre_technique_name == "Valid Accounts"
    assert alert.ai_summary
    assert alert.incident_id == result.incident_id

    incident = await IncidentRepository(mongo_db).get_incident(result.incident_id)
    assert incident.alert_ids == [alert.id]


@pytest.mark.asyncio
async def test_inactive_policies_are_ignored(engine, mongo_db):
    await add_policy(mongo_db, "Root Login", "user", "equals", "root", is_active=False)

    result = await engine.ingest(event(details={"user": "root"}))

    assert result.analysis == EventStatus.SAFE


@pytest.mark.asyncio
async def test_oldest_active_policy_wins(engine, mongo_db):
    await add_policy(mongo_db, "Older", "user", "equals", "root", mitre_technique_id="T1078")
    await add_policy(mongo_db, "Newer", "user", "contains", "roo", mitre_technique_id="T1110")

    result = await engine.ingest(event(details={"user": "root"}))

    alert = await AlertRepository(mongo_db).get_alert(result.alert_id)
    assert alert.message == "Detected Older from vpn-1"
    assert alert.mitre_technique_id == "T1078"


@pytest.mark.asyncio
async def test_anomaly_only_alert(engine, mongo_db):
    await engine.ingest(event(type=PROCESS_SPAWN, source="ws-1", details={"process": "chrome.exe"}))

    result = await engine.ingest(event(type=PROCESS_SPAWN, source="ws-1", details={"process": "nc.exe"}))

    assert result.analysis == EventStatus.MALICIOUS
    assert result.risk_score == 50
    alert = await AlertRepository(mongo_db).get_alert(result.alert_id)
    assert alert.message == (
        "Anomaly: New process 'nc.exe' executed on ws-1. Never seen in previous baselines."
    )
    assert alert.mitre_tactic == "Defense Evasion"
    assert alert.mitre_technique_id is None
    assert alert.mitre_technique_name is None
    assert alert.ai_summary.startswith("Behavioral Anomaly: ws-1 exhibited unusual activity")
    assert "(ID: N/A)" in alert.ai_summary


@pytest.mark.asyncio
async def test_anomaly_and_policy_keep_anomaly_message_and_policy_mitre(engine, mongo_db):
    await add_policy(
        mongo_db, "Detect PowerShell Execution", "process", "equals", "powershell.exe",
        mitre_tactic="Execution", mitre_technique_id="T1059",
    )
    await engine.ingest(event(type=PROCESS_SPAWN, source="ws-1", details={"process": "chrome.exe"}))

    result = await engine.ingest(event(type=PROCESS_SPAWN, source="ws-1", details={"process": "powershell.exe"}))

    assert result.risk_score == 100
    alert = await AlertRepository(mongo_db).get_alert(result.alert_id)
    assert alert.message.startswith("Anomaly: New process 'powershell.exe'")
    assert alert.mitre_tactic == "Execution"
    assert alert.mitre_technique_id == "T1059"
    assert "Detect PowerShell Execution" in alert.ai_summary


@pytest.mark.asyncio
async def test_malicious_events_from_one_source_share_incident(engine, mongo_db, clock):
    await add_policy(mongo_db, "Root Login", "user", "equals", "root")

    first = await engine.ingest(event(details={"user": "root"}))
    clock.advance(minutes=2)
    second = await engine.ingest(event(details={"user": "root"}))

    assert first.incident_id == second.incident_id


@pytest.mark.asyncio
async def test_supplied_timestamp_is_stored(engine, mongo_db):
    timestamp = validate_event({
        "type": "SSH_LOGIN", "source": "vpn-1", "details": {}, "timestamp": "2024-01-15T10:30:00+02:00",
    }).timestamp

    result = await engine.ingest(event(timestamp=timestamp))

    stored = await EventRepository(mongo_db).get_event(result.event_id)
    assert stored.timestamp == datetime(2024, 1, 15, 8, 30, 0)


@pytest.mark.asyncio
async def test_missing_timestamp_uses_clock(engine, mongo_db, clock):
    result = await engine.ingest(event())

    stored = await EventRepository(mongo_db).get_event(result.event_id)
    assert stored.timestamp == clock()


@pytest.mark.asyncio
async def test_detector_failure_degrades_to_safe(mongo_db, clock):
    engine = DetectionEngine.from_database(mongo_db, clock=clock)
    engine.anomaly_detector = MagicMock()
    engine.anomaly_detector.detect = AsyncMock(side_effect=RuntimeError("baseline store down"))
    engine.signature_detector = MagicMock()
    engine.signature_detector.detect.side_effect = RuntimeError("bad policy")

    result = await engine.ingest(event(details={"user": "root"}))

    assert result.analysis == EventStatus.SAFE
    assert await EventRepository(mongo_db).get_event(result.event_id) is not None


@pytest.mark.asyncio
async def test_policy_load_failure_means_no_policies(mongo_db, clock):
    engine = DetectionEngine.from_database(mongo_db, clock=clock)
    engine.policy_repository = MagicMock()
    engine.policy_repository.get_active_policies = AsyncMock(side_effect=AutoReconnect("gone"))

    result = await engine.ingest(event(details={"user": "root"}))

    assert result.analysis == EventStatus.SAFE


@pytest.mark.asyncio
async def test_event_write_failure_propagates(mongo_db, clock):
    engine = DetectionEngine.from_database(mongo_db, clock=clock)
    engine.event_repository = MagicMock()
    engine.event_repository.create_event = AsyncMock(side_effect=AutoReconnect("gone"))

    with pytest.raises(AutoReconnect):
        await engine.ingest(event())

    assert await AlertRepository(mongo_db).list_alerts() == []


@pytest.mark.asyncio
async def test_alert_write_failure_keeps_event(mongo_db, clock):
    await add_policy(mongo_db, "Root Login", "user", "equals", "root")
    engine = DetectionEngine.from_database(mongo_db, clock=clock)
    engine.alert_repository = MagicMock()
    engine.alert_repository.create_alert = AsyncMock(side_effect=AutoReconnect("gone"))

    with pytest.raises(AutoReconnect):
        await engine.ingest(event(details={"user": "root"}))

    stored = await EventRepository(mongo_db).recent_events()
    assert len(stored) == 1
    assert stored[0].status == EventStatus.MALICIOUS


@pytest.mark.asyncio
async def test_process_event_returns_ingest_response(mongo_db):
    await add_policy(mongo_db, "Root Login", "user", "equals", "root")

    response = await process_event(
        {"type": "SSH_LOGIN", "source": "vpn-1", "details": {"service": "ssh", "user": "root"}}, mongo_db
    )

    assert response.model_dump(by_alias=True, mode="json") == {
        "status": "ok",
        "eventId": response.event_id,
        "analysis": "MALICIOUS",
    }


@pytest.mark.parametrize("payload", [
    {"source": "vpn-1", "details": {}},
    {"type": "SSH_LOGIN", "details": {}},
    {"type": "", "source": "vpn-1", "details": {}},
    {"type": "SSH_LOGIN", "source": "vpn-1"},
    {"type": "SSH_LOGIN", "source": "vpn-1", "details": "user=root"},
    {"type": "SSH_LOGIN", "source": "vpn-1", "details": {}, "timestamp": 1705312200},
    {"type": "SSH_LOGIN", "source": "vpn-1", "details": {}, "timestamp": "yesterday"},
    ["not", "an", "object"],
])
def test_invalid_payloads_are_rejected(payload):
    with pytest.raises(EventValidationError):
        validate_event(payload)


@pytest.mark.asyncio
async def test_invalid_payload_writes_nothing(mongo_db):
    with pytest.raises(EventValidationError):
        await process_event({"type": "SSH_LOGIN", "details": {}}, mongo_db)

    assert await EventRepository(mongo_db).count({}) == 0


@pytest.mark.asyncio
async def test_concurrent_same_source_ingests_share_state(mongo_db):
    await add_policy(mongo_db, "Root Login", "user", "equals", "root", mitre_technique_id="T1078")
    payload = {"type": PROCESS_SPAWN, "source": "vpn-1", "details": {"process": "sshd", "user": "root"}}

    responses = await asyncio.gather(*[process_event(dict(payload), mongo_db) for _ in range(10)])

    assert all(response.analysis == EventStatus.MALICIOUS for response in responses)
    baselines = BaselineRepository(mongo_db)
    assert await baselines.count({"source": "vpn-1", "metric": KNOWN_PROCESSES}) == 1
    assert await baselines.count({"source": "vpn-1", "metric": EVENT_VOLUME}) == 1

    incidents = await IncidentRepository(mongo_db).list_incidents()
    assert len(incidents) == 1
    alerts = await AlertRepository(mongo_db).list_alerts()
    assert len(alerts) == 10
    assert sorted(incidents[0].alert_ids) == sorted(alert.id for alert in alerts)
    assert {alert.incident_id for alert in alerts} == {incidents[0].id}
