"""
MongoDB connection management
"""

from typing import Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from visitor_intel.core.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def get_client(config: Optional[Settings] = None) -> AsyncIOMotorClient:
    """Get (or lazily create) the shared motor client"""
    global _client
    config = config or default_settings
    if _client is None:
        _client = AsyncIOMotorClient(config.MONGODB_URL, tz_aware=True)
        logger.info("MongoDB client created", database=config.MONGODB_DATABASE)
    return _client


def get_database(config: Optional[Settings] = None) -> AsyncIOMotorDatabase:
    """Get the configured database"""
    config = config or default_settings
    return get_client(config)[config.MONGODB_DATABASE]


async def ensure_indexes(db: AsyncIOMotorDatabase, config: Optional[Settings] = None):
    """Create the tenant-scoped unique keys the stores rely on"""
    config = config or default_settings
    try:
        sessions = db[config.SESSIONS_COLLECTION]
        await sessions.create_index(
            [("tenant_id", ASCENDING), ("session_id", ASCENDING)], unique=True
        )
        await sessions.create_index([("tenant_id", ASCENDING), ("start_time", DESCENDING)])

        companies = db[config.COMPANIES_COLLECTION]
        await companies.create_index(
            [("tenant_id", ASCENDING), ("domain", ASCENDING)], unique=True
        )
        await companies.create_index([("tenant_id", ASCENDING), ("status", ASCENDING)])
        logger.info("MongoDB indexes ensured")
    except Exception as e:
        logger.error("Failed to create MongoDB indexes", err=str(e))
        raise


def close_client():
    """Close the shared client"""
    global _client
    if _client is not None:
        _client.close()
        _client = None
