"""
Tests for Motor client management.
"""

from unittest.mock import MagicMock, patch

import pytest

from mongo_repository.core import db


@pytest.fixture(autouse=True)
def reset_client():
    db._client = None
    yield
    db._client = None


@pytest.fixture
def motor_client():
    with patch("mongo_repository.core.db.AsyncIOMotorClient") as client_cls:
        yield client_cls


class TestClient:
    def test_client_built_from_settings(self, motor_client):
        with patch.object(db.settings, "mongo_app_name", "orders-api"):
            db.create_fresh_client()

        args, kwargs = motor_client.call_args
        assert args == (db.settings.mongo_url,)
        assert kwargs["appname"] == "orders-api"
        assert kwargs["serverSelectionTimeoutMS"] == db.settings.mongo_server_selection_timeout_ms
        assert kwargs["tz_aware"] is True

    def test_app_name_falls_back(self, motor_client):
        with patch.object(db.settings, "mongo_app_name", None):
            db.create_fresh_client()
        assert motor_client.call_args.kwargs["appname"] == db.settings.app_name

    def test_get_client_is_cached(self, motor_client):
        assert db.get_client() is db.get_client()
        motor_client.assert_called_once()

    def test_get_database_uses_default_name(self, motor_client):
        db.get_database()
        motor_client.return_value.__getitem__.assert_called_once_with(db.settings.mongo_database)

    def test_get_database_by_name(self, motor_client):
        db.get_database("reports")
        motor_client.return_value.__getitem__.assert_called_once_with("reports")


class TestCloseClient:
    def test_close_releases_cached_client(self, motor_client):
        client = db.get_client()

        db.close_client()

        client.close.assert_called_once()
        assert db._client is None

    def test_close_without_client_is_noop(self):
        db.close_client()
        assert db._client is None

    def test_new_client_after_close(self, motor_client):
        motor_client.side_effect = [MagicMock(), MagicMock()]
        first = db.get_client()
        db.close_client()
        assert db.get_client() is not first
