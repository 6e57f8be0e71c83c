"""
Domain-specific exceptions for the repository layer.

These exceptions represent failures the data-access layer can describe in
domain terms. Each carries a status code so a caller-owned transport layer
can map it directly onto a protocol response.

Storage failures that are not listed here (network errors, server selection
timeouts, ...) are never wrapped and propagate unchanged.
"""

from typing import Any


class RepositoryError(Exception):
    """Base exception for all repository domain errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RepositoryError):
    """
    Raised when filter or update input fails validation.

    Examples:
    - Range filter key that is not a field of the model
    - Update object with nothing to set

    Raised before any network call is made.

    HTTP Status: 400 Bad Request
    """

    status_code = 400


class ConflictError(RepositoryError):
    """
    Raised when a write conflicts with a uniqueness constraint.

    The offending key payload is embedded in the message and exposed
    under ``details["key"]``.

    HTTP Status: 409 Conflict
    """

    status_code = 409


class ConfigurationError(RepositoryError):
    """
    Raised when a repository is wired up incorrectly.

    Examples:
    - Model type without an ``id`` field

    Fatal at construction time, never raised by a query.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500


class OperationCancelledError(RepositoryError):
    """
    Raised when an in-flight operation is aborted by its cancellation token.

    Typically fired by the application lifetime while shutting down.

    HTTP Status: 503 Service Unavailable
    """

    status_code = 503


# HTTP Status Code Mapping
ERROR_STATUS_MAP = {
    ValidationError: 400,
    ConflictError: 409,
    ConfigurationError: 500,
    OperationCancelledError: 503,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_MAP:
            return ERROR_STATUS_MAP[cls]
    return 500
