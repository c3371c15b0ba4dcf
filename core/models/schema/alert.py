from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from core.models.schema.common import CamelModel, Severity
from core.models.schema.event import Event

class AlertStatus(str, Enum):
    OPEN = "OPEN"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"


class AlertBase(CamelModel):
    event_id: str
    severity: Severity
    message: str
    status: AlertStatus = AlertStatus.OPEN
    mitre_tactic: Optional[str] = None
    mitre_technique_id: Optional[str] = None
    mitre_technique_name: Optional[str] = None
    ai_summary: str = ""

class AlertCreate(AlertBase):
    pass

class Alert(AlertBase):
    id: str
    incident_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AlertIncidentRef(CamelModel):
    id: str
    severity: Severity
    status: str
    summary: str

class AlertWithContext(Alert):
    event: Optional[Event] = None
    incident: Optional[AlertIncidentRef] = None


class AlertStatusUpdate(BaseModel):
    status: str
