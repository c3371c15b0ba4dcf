from enum import Enum
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from core.models.schema.common import CamelModel, to_naive_utc

class EventStatus(str, Enum):
    SAFE = "SAFE"
    MALICIOUS = "MALICIOUS"


class EventIngest(BaseModel):
    '''Payload accepted by the ingestion entry point.'''
    type: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    details: Dict[str, Any]
    timestamp: Optional[datetime] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def require_iso_string(cls, v: Any) -> Any:
        if v is not None and not isinstance(v, (str, datetime)):
            raise ValueError("timestamp must be an ISO-8601 string")
        return v

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None


class Event(CamelModel):
    id: str
    type: str
    source: str
    details: Dict[str, Any] = {}
    risk_score: int = Field(0, ge=0, le=100)
    status: EventStatus
    timestamp: datetime


class IngestResponse(CamelModel):
    status: str = "ok"
    event_id: str
    analysis: EventStatus


class IngestionResult(BaseModel):
    '''Outcome of classifying and storing one event.'''
    event_id: str
    analysis: EventStatus
    risk_score: int
    alert_id: Optional[str] = None
    incident_id: Optional[str] = None
