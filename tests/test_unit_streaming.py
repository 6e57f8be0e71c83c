"""
Tests for cursor streaming.

Tests cover:
- Batches of the configured size covering every matching row
- Sort applied to the streamed cursor
- Cursor release on exhaustion, early exit and cancellation
- Projected streaming
"""

import asyncio
import gc
from contextlib import aclosing

import pytest

from mongo_repository.core.errors import OperationCancelledError
from tests.fakes import WidgetFilter, WidgetName


class TestStream:
    @pytest.mark.anyio
    async def test_yields_batches_until_exhausted(self, repo, collection):
        batches = [batch async for batch in repo.stream(WidgetFilter(sort="id-asc"))]

        assert [len(batch) for batch in batches] == [10, 10, 5]
        assert [w.id for batch in batches for w in batch] == list(range(1, 26))
        cursor = collection.cursors[-1]
        assert cursor.batch == 10
        assert cursor.closed

    @pytest.mark.anyio
    async def test_filter_applies(self, repo):
        batches = [batch async for batch in repo.stream(WidgetFilter(category_id=1))]
        assert sum(len(batch) for batch in batches) == 9

    @pytest.mark.anyio
    async def test_no_match_yields_nothing(self, repo, collection):
        batches = [batch async for batch in repo.stream(WidgetFilter(name="nope"))]

        assert batches == []
        assert collection.cursors[-1].closed

    @pytest.mark.anyio
    async def test_early_exit_releases_cursor(self, repo, collection):
        async with aclosing(repo.stream(WidgetFilter())) as batches:
            async for batch in batches:
                assert len(batch) == 10
                break

        cursor = collection.cursors[-1]
        assert cursor.closed
        assert cursor.to_list_calls == 1

    @pytest.mark.anyio
    async def test_bare_break_releases_cursor_once_finalized(self, repo, collection):
        async for batch in repo.stream(WidgetFilter()):
            assert len(batch) == 10
            break

        gc.collect()
        for _ in range(5):
            await asyncio.sleep(0)

        assert collection.cursors[-1].closed

    @pytest.mark.anyio
    async def test_cancellation_releases_cursor(self, repo, collection, cancel_token):
        seen = 0
        with pytest.raises(OperationCancelledError):
            async for batch in repo.stream(WidgetFilter()):
                seen += len(batch)
                cancel_token.cancel()

        assert seen == 10
        assert collection.cursors[-1].closed

    @pytest.mark.anyio
    async def test_stream_projection(self, repo, collection):
        batches = [
            batch
            async for batch in repo.stream_projection(WidgetFilter(to=4), WidgetName)
        ]

        assert batches == [[WidgetName(name=f"widget-0{i}") for i in (1, 2, 3)]]
        assert collection.projections[-1] == {"name": 1, "_id": 0}
        assert collection.cursors[-1].closed
