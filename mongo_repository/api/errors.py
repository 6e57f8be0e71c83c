"""
FastAPI integration for repository errors.

Maps RepositoryError subclasses onto JSON responses carrying the mapped
status code, so routes can let repository calls raise.

Usage:
    app = FastAPI()
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mongo_repository.core.errors import RepositoryError, get_status_code
from mongo_repository.core.observability import get_correlation_id

logger = logging.getLogger(__name__)


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    """
    Handle domain errors raised by repositories.

    Args:
        request: The incoming request
        exc: The domain exception raised

    Returns:
        JSON response with error details
    """
    status_code = get_status_code(exc)

    context = {
        "details": exc.details,
        "path": request.url.path,
        "correlation_id": get_correlation_id(),
    }

    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message}", extra=context)
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra=context)

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the repository error handler on an application."""
    app.add_exception_handler(RepositoryError, repository_error_handler)
