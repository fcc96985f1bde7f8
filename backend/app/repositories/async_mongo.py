"""Async MongoDB Client (Motor) used by the async health endpoint"""
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorClient

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

_async_client: Optional[AsyncIOMotorClient] = None


def get_async_client() -> AsyncIOMotorClient:
    """Get or create async MongoDB client using Motor"""
    global _async_client
    if _async_client is None:
        logger.info(f"Creating async MongoDB client for: {settings.mongo_uri}")
        _async_client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=2000,
            connectTimeoutMS=2000,
        )
    return _async_client


async def close_async_connection() -> None:
    global _async_client
    if _async_client is not None:
        _async_client.close()
        _async_client = None
        logger.info("Async MongoDB connection closed")


async def async_health_check() -> Dict[str, Any]:
    """Ping MongoDB without blocking the event loop"""
    try:
        await get_async_client().admin.command("ping")
        return {"status": "healthy", "database": settings.mongo_db, "connection": "ok"}
    except Exception as e:
        logger.error(f"Async MongoDB health check failed: {e}")
        return {"status": "unhealthy", "database": settings.mongo_db, "error": str(e)}
