"""
Shared fixtures: an in-memory MongoDB, a controllable clock and helpers to
store policies and alerts.
"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from mongomock_motor import AsyncMongoMockClient

from core.database.connection import ensure_indexes
from core.database.repositories.alert_repository import AlertRepository
from core.database.repositories.policy_repository import PolicyRepository
from core.models.schema.alert import AlertCreate
from core.models.schema.common import Severity


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def mongo_db():
    client = AsyncMongoMockClient()
    database = client["cortex_test"]
    await ensure_indexes(database)
    return database


async def add_policy(database, name, field, operator, value, is_active=True, **mitre):
    return await PolicyRepository(database).create_policy({
        "name": name,
        "rule": {"field": field, "operator": operator, "value": value},
        "is_active": is_active,
        "mitre_tactic": mitre.get("mitre_tactic"),
        "mitre_technique_id": mitre.get("mitre_technique_id"),
        "mitre_technique_name": mitre.get("mitre_technique_name"),
    })


async def add_alert(database, event_id, severity=Severity.CRITICAL, technique_id=None):
    return await AlertRepository(database).create_alert(AlertCreate(
        event_id=event_id,
        severity=severity,
        message=f"Alert for {event_id}",
        mitre_technique_id=technique_id,
    ))
