"""
FastAPI lifespan wiring for repositories.

Ties the application lifetime's ``stopping`` token and the cached Motor
client to the application's startup/shutdown sequence.

Usage:
    lifetime = ApplicationLifetime()
    app = FastAPI(lifespan=repository_lifespan(lifetime))
    users = MongoRepository(get_database(), "users", User, DefaultComposer(),
                            cancel=lifetime.stopping)
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from mongo_repository.core.cancellation import ApplicationLifetime
from mongo_repository.core.config import settings
from mongo_repository.core.db import close_client, get_client
from mongo_repository.core.observability import configure_structured_logging

logger = logging.getLogger(__name__)


def repository_lifespan(
    lifetime: ApplicationLifetime,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """
    Build a lifespan handler for ``lifetime``.

    On startup: configure logging and create the client.
    On shutdown: fire ``lifetime.stopping`` first so in-flight operations
    and open cursors unwind, then close the client.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.observability_structured_logs:
            configure_structured_logging(settings.app_log_level)
        get_client()
        logger.info(f"Repository layer started for {settings.app_name}")
        try:
            yield
        finally:
            lifetime.stop()
            close_client()
            logger.info("Repository layer stopped")

    return lifespan
