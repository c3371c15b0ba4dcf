from fastapi import APIRouter, Depends
from core.database.connection import get_database
from core.services.dashboard_service import DashboardService

router = APIRouter()

@router.get("/stats")
async def get_dashboard_stats(db=Depends(get_database)):
    '''Counters, recent events and event volume for the last four hours.'''
    return await DashboardService(db).get_stats()
