"""
Tests for structured logging and database metrics.
"""

import json
import logging
import sys

import pytest
from prometheus_client import CollectorRegistry

from mongo_repository.core.observability import (
    DBMetricsWrapper,
    Metrics,
    StructuredFormatter,
    metrics_text,
    set_correlation_id,
)
from tests.fakes import WidgetFilter


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="mongo_repository.repos.base",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
        func="find",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_formats_json_with_extra(self):
        set_correlation_id("")
        entry = json.loads(StructuredFormatter().format(make_record("found", collection="users")))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "mongo_repository.repos.base"
        assert entry["message"] == "found"
        assert entry["function"] == "find"
        assert entry["extra"] == {"collection": "users"}
        assert "correlation_id" not in entry

    def test_includes_correlation_id(self):
        set_correlation_id("req-42")
        try:
            entry = json.loads(StructuredFormatter().format(make_record("found")))
        finally:
            set_correlation_id("")

        assert entry["correlation_id"] == "req-42"

    def test_includes_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            record = make_record("failed")
            record.exc_info = sys.exc_info()

        entry = json.loads(StructuredFormatter().format(record))
        assert entry["exception"] == {"type": "ValueError", "message": "bad value"}


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def wrapper(registry: CollectorRegistry) -> DBMetricsWrapper:
    return DBMetricsWrapper(Metrics(registry))


class TestDBMetrics:
    def test_success_counted(self, wrapper, registry):
        with wrapper.track("find", "users"):
            pass

        assert registry.get_sample_value(
            "db_operations_total", {"operation": "find", "collection": "users", "status": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "db_operation_duration_seconds_count", {"operation": "find", "collection": "users"}
        ) == 1.0

    def test_error_counted_and_reraised(self, wrapper, registry):
        with pytest.raises(RuntimeError):
            with wrapper.track("insert_one", "users"):
                raise RuntimeError("boom")

        assert registry.get_sample_value(
            "db_operations_total",
            {"operation": "insert_one", "collection": "users", "status": "error"},
        ) == 1.0

    def test_stream_batches_counted(self, wrapper, registry):
        wrapper.batch_streamed("users")
        wrapper.batch_streamed("users")

        assert registry.get_sample_value("db_stream_batches_total", {"collection": "users"}) == 2.0

    @pytest.mark.anyio
    async def test_repository_operations_exported(self, repo):
        await repo.exists(WidgetFilter())

        sample = b'db_operations_total{operation="exists",collection="widgets",status="success"}'
        assert sample in metrics_text()
