# variant_inventory/database.py

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from variant_inventory.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def get_client(settings: Settings = None) -> AsyncIOMotorClient:
    """Lazily create the shared Mongo client."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        if not settings.MONGODB_URL:
            raise ValueError("MONGODB_URL is not set in environment variables")
        _client = AsyncIOMotorClient(
            settings.MONGODB_URL,
            serverSelectionTimeoutMS=settings.MONGODB_TIMEOUT_MS,
            tz_aware=True,
        )
    return _client


def get_database(settings: Settings = None) -> AsyncIOMotorDatabase:
    settings = settings or get_settings()
    return get_client(settings)[settings.MONGODB_DB_NAME]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


async def ensure_indexes(db: AsyncIOMotorDatabase, settings: Settings = None):
    """
    Create the indexes the inventory service relies on.

    The unique transactionId index is what makes ledger claims race-free.
    """
    settings = settings or get_settings()
    audit = db[settings.AUDIT_COLLECTION]
    await audit.create_index([("transactionId", ASCENDING)], unique=True, name="transactionId_unique")
    await audit.create_index([("productId", ASCENDING), ("timestamp", DESCENDING)], name="product_timestamp")
    await db[settings.ORDERS_COLLECTION].create_index([("status", ASCENDING)], name="status")
    logger.info("Inventory indexes ensured")
