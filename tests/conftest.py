"""
Pytest configuration and shared fixtures.

Provides:
- AnyIO backend selection (asyncio only; Motor is asyncio-bound)
- In-memory Motor collection double seeded with widgets
- A repository over that collection
- Optional real MongoDB database for integration tests (MONGO_URL_TEST)
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator
from unittest.mock import MagicMock

import pytest

from mongo_repository.core.cancellation import CancellationToken
from mongo_repository.repos.base import MongoRepository
from tests.fakes import FakeCollection, Widget, widget_composer, widget_documents

MONGO_URL_TEST = os.environ.get("MONGO_URL_TEST", "").strip()


# =============================================================================
# AnyIO Backend Configuration
# =============================================================================
# Per AnyIO testing docs: https://anyio.readthedocs.io/en/stable/testing.html
# Motor only runs on asyncio, so trio is never parametrized in.
@pytest.fixture
def anyio_backend():
    return "asyncio"


# =============================================================================
# In-memory fixtures
# =============================================================================


@pytest.fixture
def collection() -> FakeCollection:
    """Collection double holding widgets with ids 1..25."""
    return FakeCollection("widgets", widget_documents(25))


@pytest.fixture
def database(collection: FakeCollection) -> MagicMock:
    db = MagicMock()
    db.__getitem__.return_value = collection
    return db


@pytest.fixture
def cancel_token() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def repo(database: MagicMock, cancel_token: CancellationToken) -> MongoRepository:
    return MongoRepository(
        database,
        "widgets",
        Widget,
        widget_composer(),
        cancel=cancel_token,
        stream_batch_size=10,
    )


# =============================================================================
# Integration fixtures
# =============================================================================


@pytest.fixture
async def mongo_database() -> AsyncGenerator:
    """A throwaway database on a real server, dropped afterwards."""
    if not MONGO_URL_TEST:
        pytest.skip("MONGO_URL_TEST not set")

    from motor.motor_asyncio import AsyncIOMotorClient

    client = AsyncIOMotorClient(MONGO_URL_TEST, serverSelectionTimeoutMS=3000)
    name = f"pytest_{uuid.uuid4().hex[:12]}"
    try:
        yield client[name]
    finally:
        await client.drop_database(name)
        client.close()
