"""
Generic async data-access layer for MongoDB.

Usage:
    from mongo_repository import DefaultComposer, FilterBase, MongoRepository
"""

from mongo_repository.core.cancellation import ApplicationLifetime, CancellationToken
from mongo_repository.core.errors import (
    ConfigurationError,
    ConflictError,
    OperationCancelledError,
    RepositoryError,
    ValidationError,
)
from mongo_repository.repos import (
    AggregationPipeline,
    DefaultComposer,
    FieldRegistry,
    FilterComposer,
    MongoRepository,
)
from mongo_repository.schemas import FilterBase, MetaPagination, PaginationResult

__version__ = "0.1.0"

__all__ = [
    "AggregationPipeline",
    "ApplicationLifetime",
    "CancellationToken",
    "ConfigurationError",
    "ConflictError",
    "DefaultComposer",
    "FieldRegistry",
    "FilterBase",
    "FilterComposer",
    "MetaPagination",
    "MongoRepository",
    "OperationCancelledError",
    "PaginationResult",
    "RepositoryError",
    "ValidationError",
]
