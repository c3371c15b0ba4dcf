from typing import Dict, Any
from pydantic import ValidationError
from core.detection.engine import DetectionEngine
from core.exceptions import EventValidationError
from core.models.schema.event import EventIngest, IngestResponse
from utils.locks import KeyedLock
from utils.logger import get_logger

logger = get_logger(__name__)

# Shared by every request in this process so same-source work is serialized
_baseline_locks = KeyedLock()
_correlation_locks = KeyedLock()

def get_detection_engine(database) -> DetectionEngine:
    return DetectionEngine.from_database(
        database, baseline_locks=_baseline_locks, correlation_locks=_correlation_locks
    )

def validate_event(event_data: Any) -> EventIngest:
    '''Validate a raw ingestion payload. Raises EventValidationError before anything is written.'''
    if not isinstance(event_data, dict):
        raise EventValidationError("Event payload must be a JSON object")
    try:
        return EventIngest.model_validate(event_data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
            for error in e.errors()
        )
        raise EventValidationError(problems) from e

async def process_event(event_data: Dict[str, Any], database) -> IngestResponse:
    event = validate_event(event_data)
    logger.info(f"Processing event from source: {event.source}")

    engine = get_detection_engine(database)
    result = await engine.ingest(event)

    if result.alert_id:
        logger.info(f"Generated alert {result.alert_id} for event {result.event_id}")

    return IngestResponse(event_id=result.event_id, analysis=result.analysis)
