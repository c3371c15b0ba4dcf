from fastapi import APIRouter, Depends
from core.database.connection import get_database

router = APIRouter()

@router.get("/health")
async def health_check():
    '''Health check endpoint to verify the API is up.'''
    return {
        "status": "ok",
        "service": "core-engine"
    }

@router.get("/health/db")
async def database_health_check(db=Depends(get_database)):
    '''Check database connection health.'''
    try:
        await db.command("ping")
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": "disconnected", "detail": str(e)}
