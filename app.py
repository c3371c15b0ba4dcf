from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException
from api.routes import alerts, dashboard, events, health, incidents, policies
from core.database.connection import connect_to_mongo, close_mongo_connection, get_database
from core.exceptions import EventValidationError
from core.rules.rule_loader import PolicyManager
from config import settings
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    if settings.SEED_DEFAULT_POLICIES:
        db = await get_database()
        await PolicyManager(db).seed_default_policies()
    yield
    await close_mongo_connection()

app = FastAPI(
    title="Cortex Core Engine",
    description="Event classification, behavioral baselines and incident correlation",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error responses keep the {"error": ...} shape existing consumers read
@app.exception_handler(EventValidationError)
async def event_validation_error_handler(request: Request, exc: EventValidationError):
    logger.warning(f"Rejected event: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Malformed request body"})

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {str(exc)}")
    message = "Ingestion failed" if request.url.path.endswith("/ingest") else "Storage unavailable"
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": message})

# Include API routes
app.include_router(health.router, tags=["health"])
app.include_router(events.router, prefix="/api/events", tags=["events"])
app.include_router(alerts.router, prefix="/api/events", tags=["alerts"])
app.include_router(policies.router, prefix="/api/events", tags=["policies"])
app.include_router(incidents.router, prefix="/api/events", tags=["incidents"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])

@app.get("/")
async def root():
    return {"message": "Welcome to the Cortex Core Engine API"}
