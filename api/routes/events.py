from fastapi import APIRouter, Body, Depends, status
from typing import Any, List
from core.database.connection import get_database
from core.database.repositories.event_repository import EventRepository
from core.models.schema.event import Event, IngestResponse
from core.services.event_processor import process_event

router = APIRouter()

RECENT_EVENTS_LIMIT = 50

@router.post("/ingest", response_model=IngestResponse, status_code=status.HTTP_201_CREATED)
async def ingest_event(event: Any = Body(...), db=Depends(get_database)):
    '''Classify and store one agent event. Malicious events also raise an alert.'''
    return await process_event(event, db)

@router.get("", response_model=List[Event])
async def get_events(db=Depends(get_database)):
    '''Most recent events, newest first.'''
    return await EventRepository(db).recent_events(limit=RECENT_EVENTS_LIMIT)
