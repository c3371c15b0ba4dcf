from enum import Enum
from datetime import datetime
from typing import Any, Dict, List, Optional
from core.models.schema.common import CamelModel, Severity
from core.models.schema.alert import Alert
from core.models.schema.event import Event

class IncidentStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Incident(CamelModel):
    id: str
    severity: Severity
    status: IncidentStatus = IncidentStatus.OPEN
    summary: str
    alert_ids: List[str] = []
    # Correlation keys gathered from the attached alerts
    sources: List[str] = []
    technique_ids: List[str] = []
    created_at: datetime
    updated_at: datetime


class IncidentAlert(Alert):
    event: Optional[Event] = None

class IncidentWithAlerts(Incident):
    alerts: List[IncidentAlert] = []


class TimelineEntry(CamelModel):
    type: str  # ALERT or EVENT
    timestamp: datetime
    message: str
    source: str
    severity: Optional[Severity] = None
    mitre_tactic: Optional[str] = None
    mitre_technique_id: Optional[str] = None
    ai_summary: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

class IncidentDetails(IncidentWithAlerts):
    timeline: List[TimelineEntry] = []
