from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel

KNOWN_PROCESSES = "known_processes"
EVENT_VOLUME = "event_volume"


class VolumeStats(BaseModel):
    avg: float
    threshold: int


class BehavioralBaseline(BaseModel):
    id: str
    source: str
    metric: str
    value: Any
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AnomalyResult(BaseModel):
    is_anomaly: bool = False
    reason: Optional[str] = None
