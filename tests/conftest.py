import pytest
import pytest_asyncio

from rotation_backend.db.memory import InMemoryItemStore
from rotation_backend.db.sqlalchemy import SqlItemStore
from rotation_backend.models.collections import COLLECTIONS

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


def make_store(kind: str):
    if kind == "sql":
        return SqlItemStore(SQLITE_MEMORY_URL, collections=COLLECTIONS.keys())
    return InMemoryItemStore()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request):
    """A connected, empty item store of every implementation that runs without a server."""
    s = make_store(request.param)
    await s.connect()
    yield s
    await s.disconnect()


@pytest_asyncio.fixture
async def sql_store():
    s = make_store("sql")
    await s.connect()
    yield s
    await s.disconnect()


@pytest.fixture
def sample_events():
    return COLLECTIONS["events"].sample_payloads()
