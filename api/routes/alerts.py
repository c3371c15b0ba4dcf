from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from core.database.connection import get_database
from core.database.repositories.alert_repository import AlertRepository
from core.models.schema.alert import Alert, AlertStatus, AlertStatusUpdate, AlertWithContext
from core.services.incident_service import IncidentService

router = APIRouter()

@router.get("/alerts", response_model=List[AlertWithContext])
async def get_alerts(db=Depends(get_database)):
    '''Alerts, newest first, with their event and incident.'''
    return await IncidentService(db).list_alerts()

@router.patch("/alerts/{alert_id}/status", response_model=Alert)
async def update_alert_status(alert_id: str, update: AlertStatusUpdate, db=Depends(get_database)):
    '''Move an alert through triage: OPEN, ACKNOWLEDGED or RESOLVED.'''
    if update.status not in {s.value for s in AlertStatus}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")
    alert = await AlertRepository(db).update_alert_status(alert_id, AlertStatus(update.status))
    if not alert:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
    return alert
