"""
Observability module for the repository layer.

Provides:
- Structured logging with JSON format and correlation IDs
- Correlation ID context propagation (set by the caller's transport layer)
- Prometheus metrics for database operations and cursor streaming

Usage:
    from mongo_repository.core.observability import (
        configure_structured_logging,
        db_metrics,
        get_logger,
        set_correlation_id,
    )
"""

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# ============================================================================
# Context Variables
# ============================================================================

# Correlation ID - links all repository logs for a single unit of work
_correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return _correlation_id_ctx.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_ctx.set(correlation_id)


# ============================================================================
# Structured Logging Configuration
# ============================================================================

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as JSON with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level
    - logger: Logger name
    - message: Log message
    - correlation_id: Correlation ID (if available)
    - exception: Exception type and message (if any)
    - extra: Any additional context from logging.extra
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        log_entry["function"] = record.funcName

        extra_keys = {
            k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS
        }
        if extra_keys:
            log_entry["extra"] = extra_keys

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: str = "INFO") -> None:
    """
    Configure root logger with structured JSON formatting.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a repository module.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# ============================================================================
# Prometheus Metrics
# ============================================================================

# Use a custom registry to avoid conflicts with the host application's metrics
_registry = CollectorRegistry()


class Metrics:
    """
    Centralized metrics collection for repository operations.

    Metrics:
    - db_operations_total: Counter of operations by operation, collection, status
    - db_operation_duration_seconds: Histogram of operation latency
    - db_stream_batches_total: Counter of batches yielded by streaming cursors
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self.db_operations_total = Counter(
            "db_operations_total",
            "Total repository operations",
            ["operation", "collection", "status"],
            registry=registry,
        )
        self.db_operation_duration_seconds = Histogram(
            "db_operation_duration_seconds",
            "Repository operation latency in seconds",
            ["operation", "collection"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=registry,
        )
        self.db_stream_batches_total = Counter(
            "db_stream_batches_total",
            "Total batches yielded by streaming cursors",
            ["collection"],
            registry=registry,
        )


metrics = Metrics(_registry)


class DBMetricsWrapper:
    """
    Wrapper to track database operation metrics.

    Usage in repos:
        with db_metrics.track("find", "users"):
            rows = await cursor.to_list(length=None)
    """

    def __init__(self, metrics_instance: Metrics | None = None) -> None:
        self.metrics = metrics_instance or metrics

    @contextmanager
    def track(self, operation: str, collection: str) -> Iterator[None]:
        """
        Context manager to track database operation metrics.

        Args:
            operation: Name of the operation (e.g., "find", "insert_one")
            collection: Collection the operation runs against
        """
        start = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            duration = time.perf_counter() - start
            self.metrics.db_operation_duration_seconds.labels(
                operation=operation, collection=collection
            ).observe(duration)
            self.metrics.db_operations_total.labels(
                operation=operation, collection=collection, status=status
            ).inc()

    def batch_streamed(self, collection: str) -> None:
        self.metrics.db_stream_batches_total.labels(collection=collection).inc()


# Global DB metrics wrapper
db_metrics = DBMetricsWrapper()


def metrics_text() -> bytes:
    """Return the repository metrics in Prometheus text format for scraping."""
    return generate_latest(_registry)
