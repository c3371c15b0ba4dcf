from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from core.database.connection import get_database
from core.models.schema.incident import IncidentDetails, IncidentWithAlerts
from core.services.incident_service import IncidentService

router = APIRouter()

@router.get("/incidents", response_model=List[IncidentWithAlerts])
async def get_incidents(db=Depends(get_database)):
    '''Incidents, most recently updated first, with alerts and their events.'''
    return await IncidentService(db).list_incidents()

@router.get("/incidents/{incident_id}", response_model=IncidentDetails)
async def get_incident_details(incident_id: str, db=Depends(get_database)):
    '''Incident with a merged alert and event timeline.'''
    incident = await IncidentService(db).get_incident_details(incident_id)
    if not incident:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incident not found")
    return incident
