"""
Integration tests against a real MongoDB server.

Skipped unless MONGO_URL_TEST points at a server, e.g.:
    MONGO_URL_TEST=mongodb://localhost:27017 pytest -m integration
"""

from contextlib import aclosing

import pytest

from mongo_repository.core.errors import ConflictError
from mongo_repository.repos.base import MongoRepository
from tests.fakes import Widget, WidgetFilter, WidgetUpdate, widget_composer

pytestmark = pytest.mark.integration


@pytest.fixture
async def widgets(mongo_database) -> MongoRepository:
    repo = MongoRepository(mongo_database, "widgets", Widget, widget_composer(), stream_batch_size=10)
    await repo.insert_many(
        [Widget(id=i, name=f"widget-{i:02d}", size=i * 10, category_id=i % 3) for i in range(1, 26)]
    )
    return repo


@pytest.mark.anyio
async def test_last_page(widgets):
    page = await widgets.find_with_pagination(WidgetFilter(page_index=3, page_size=10, sort="id-asc"))

    assert [w.id for w in page.rows] == [21, 22, 23, 24, 25]
    assert page.meta.info == "Data 21 ~ 25 of 25"
    assert page.meta.page_count == 3


@pytest.mark.anyio
async def test_default_sort_is_newest_first(widgets):
    rows = await widgets.find(WidgetFilter(sort="unknown"))
    assert rows[0].id == 25


@pytest.mark.anyio
async def test_duplicate_id_conflicts(widgets):
    with pytest.raises(ConflictError) as exc_info:
        await widgets.insert_one(Widget(id=1, name="again"))
    assert "_id" in exc_info.value.message


@pytest.mark.anyio
async def test_unique_index_conflicts(widgets, mongo_database):
    await mongo_database["widgets"].create_index("name", unique=True)

    with pytest.raises(ConflictError, match="widget-01"):
        await widgets.insert_one(Widget(id=100, name="widget-01"))


@pytest.mark.anyio
async def test_update_and_read_back(widgets):
    result = await widgets.update_one(WidgetFilter(id=4), WidgetUpdate(size=1))
    assert result.modified_count == 1

    found = await widgets.find_by_id(4)
    assert found.size == 1


@pytest.mark.anyio
async def test_stream_in_batches(widgets):
    sizes = []
    async with aclosing(widgets.stream(WidgetFilter())) as batches:
        async for batch in batches:
            sizes.append(len(batch))

    assert sizes == [10, 10, 5]


@pytest.mark.anyio
async def test_aggregate_pagination(widgets):
    f = WidgetFilter(category_id=0, page_index=1, page_size=3, sort="id-asc")
    page, count = widgets.aggregate_with_pagination(f)

    result = await widgets.to_pagination(page, f, count)

    assert [w.id for w in result.rows] == [3, 6, 9]
    assert result.meta.page_count == 3
    assert result.meta.info == "Data 1 ~ 3 of 8"
