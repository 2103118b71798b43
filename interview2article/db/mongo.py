"""MongoDB connection setup using Motor async driver.

Only the snapshot store and the health check touch the database; everything
else runs from the in-memory state tree.
"""

import logging
import os

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

# Configuration from environment variables with defaults
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "interview2article")

# Global client instance
_client: AsyncIOMotorClient | None = None


async def get_database() -> AsyncIOMotorDatabase:
    """Get the database instance, creating client if needed."""
    global _client
    if _client is None:
        # Fail fast if MongoDB is unavailable
        _client = AsyncIOMotorClient(
            MONGODB_URL,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
        )
        logger.info(f"Connected Motor client for database {DATABASE_NAME}")
    return _client[DATABASE_NAME]


async def get_collection(name: str) -> AsyncIOMotorCollection:
    """Get a collection from the configured database."""
    db = await get_database()
    return db[name]


async def ping() -> bool:
    """Return True if the database answers a ping."""
    try:
        db = await get_database()
        await db.command("ping")
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False
    return True


async def close_database() -> None:
    """Close the database connection."""
    global _client
    if _client is not None:
        _client.close()
        _client = None


def get_client() -> AsyncIOMotorClient | None:
    """Get the current client instance (for testing)."""
    return _client


def set_client(client: AsyncIOMotorClient | None) -> None:
    """Set the client instance (for testing)."""
    global _client
    _client = client
