"""
MongoDB client management.

Provides a cached Motor client and database handles built from settings.
Repositories receive a database handle at construction and never open
connections themselves, so several repositories can share one client.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mongo_repository.core.config import settings

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None


def create_fresh_client() -> AsyncIOMotorClient:
    """Create a fresh Motor client without caching.

    Used for tests to ensure each test gets its own client bound to its event loop.
    """
    url = settings.mongo_url
    if not url:
        raise RuntimeError("MONGO_URL is required")

    return AsyncIOMotorClient(
        url,
        serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        appname=settings.mongo_app_name or settings.app_name,
        uuidRepresentation="standard",
        tz_aware=True,
    )


def get_client() -> AsyncIOMotorClient:
    """
    Create and cache the Motor client.

    The client owns its own connection pool and is safe to share between
    concurrent operations.

    Returns:
        Configured Motor client
    """
    global _client

    if _client is not None:
        return _client

    _client = create_fresh_client()
    logger.info(
        "MongoDB client created",
        extra={"app_name": settings.mongo_app_name or settings.app_name},
    )
    return _client


def get_database(name: str | None = None) -> AsyncIOMotorDatabase:
    """
    Get a database handle from the cached client.

    Args:
        name: Database name (default: settings.mongo_database)

    Returns:
        Motor database handle
    """
    return get_client()[name or settings.mongo_database]


def close_client() -> None:
    """Close the cached client and forget it.

    Useful for tests and application shutdown.
    """
    global _client

    if _client is not None:
        _client.close()
        logger.info("MongoDB client closed")
    _client = None
