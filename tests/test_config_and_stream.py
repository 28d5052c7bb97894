"""Settings helpers, store factory selection and the SSE frame generator."""

import pytest

from rotation_backend.core.config import Settings
from rotation_backend.core.errors import ConfigurationError
from rotation_backend.db.factory import create_item_store
from rotation_backend.db.memory import InMemoryItemStore
from rotation_backend.db.mongo import MongoItemStore
from rotation_backend.db.sqlalchemy import SqlItemStore
from rotation_backend.routers.stream import CONNECTED_FRAME, KEEPALIVE_FRAME, keepalive_frames


def _settings(**overrides):
    base = {"_env_file": None, "MONGODB_URI": None, "DATABASE_URL": None, "SQLITE_FILE": None}
    base.update(overrides)
    return Settings(**base)


def test_mongodb_backend_requires_uri() -> None:
    with pytest.raises(ConfigurationError):
        create_item_store(_settings(DB_BACKEND="mongodb"))


def test_mongodb_backend_with_uri() -> None:
    store = create_item_store(_settings(DB_BACKEND="mongodb", MONGODB_URI="mongodb://localhost:27017"))
    assert isinstance(store, MongoItemStore)
    assert store.is_connected() is False


def test_sql_backend_requires_url_or_file() -> None:
    with pytest.raises(ConfigurationError):
        create_item_store(_settings(DB_BACKEND="sql"))


def test_sql_backend_from_sqlite_file(tmp_path) -> None:
    store = create_item_store(_settings(DB_BACKEND="sql", SQLITE_FILE=str(tmp_path / "x.db")), ["events"])
    assert isinstance(store, SqlItemStore)


def test_memory_backend() -> None:
    assert isinstance(create_item_store(_settings(DB_BACKEND="memory")), InMemoryItemStore)


def test_cors_origins_list() -> None:
    assert _settings(CORS_ALLOWED_ORIGINS="*").cors_origins_list() == ["*"]
    assert _settings(CORS_ALLOWED_ORIGINS="").cors_origins_list() == ["*"]
    assert _settings(CORS_ALLOWED_ORIGINS="http://a, http://b ,").cors_origins_list() == ["http://a", "http://b"]


def test_generation_configured_needs_all_three_values() -> None:
    assert _settings(OPENAI_API_KEY="k", OPENAI_BASE_URL="u", OPENAI_MODEL=None).generation_configured() is False
    assert _settings(OPENAI_API_KEY="k", OPENAI_BASE_URL="u", OPENAI_MODEL="m").generation_configured() is True


@pytest.mark.asyncio
async def test_keepalive_frames_until_disconnect() -> None:
    answers = iter([False, False, True])

    async def is_disconnected() -> bool:
        return next(answers)

    frames = [f async for f in keepalive_frames(is_disconnected, interval=0)]

    assert frames == [CONNECTED_FRAME, KEEPALIVE_FRAME, KEEPALIVE_FRAME]
