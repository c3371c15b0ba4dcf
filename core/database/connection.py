from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure
from config import settings
from utils.logger import get_logger
import asyncio

logger = get_logger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db_name: str = settings.DB_NAME

db = Database()
connection_established = asyncio.Event()

async def connect_to_mongo():
    try:
        logger.info(f"Connecting to MongoDB at {settings.MONGODB_URI[:20]}...")
        db.client = AsyncIOMotorClient(
            settings.MONGODB_URI,
            serverSelectionTimeoutMS=settings.MONGODB_TIMEOUT_MS,
            socketTimeoutMS=settings.MONGODB_TIMEOUT_MS,
        )
        # Validate connection
        await db.client.admin.command('ping')
        logger.info("Connected to MongoDB")
        await ensure_indexes(db.client[db.db_name])
        connection_established.set()
    except ConnectionFailure as e:
        logger.error(f"Failed to connect to MongoDB: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error connecting to MongoDB: {str(e)}")
        raise

async def close_mongo_connection():
    if db.client:
        db.client.close()
        connection_established.clear()
        logger.info("Closed MongoDB connection")

async def ensure_indexes(database):
    '''Create the indexes the detection engine relies on for uniqueness and window queries.'''
    await database.behavioral_baselines.create_index(
        [("source", ASCENDING), ("metric", ASCENDING)], unique=True
    )
    await database.policies.create_index([("name", ASCENDING)], unique=True)
    await database.policies.create_index([("is_active", ASCENDING), ("created_at", ASCENDING)])
    await database.events.create_index([("source", ASCENDING), ("timestamp", DESCENDING)])
    await database.alerts.create_index([("event_id", ASCENDING)], unique=True)
    await database.alerts.create_index([("incident_id", ASCENDING)])
    await database.incidents.create_index([("status", ASCENDING), ("updated_at", DESCENDING)])
    logger.info("MongoDB indexes ensured")

async def get_database():
    if not connection_established.is_set():
        logger.warning("Database connection not yet established, waiting...")
        try:
            await asyncio.wait_for(connection_established.wait(), timeout=10.0)
        except asyncio.TimeoutError:
            logger.error("Timed out waiting for database connection")
            raise ConnectionFailure("Database connection not established")

    if db.client is None:
        logger.error("Database client is None, connection may have failed")
        raise ConnectionFailure("Database connection not established")

    return db.client[db.db_name]
