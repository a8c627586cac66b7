"""
Shared fixtures.

Every test starts with an empty connection registry, no event subscribers
and default settings.
"""

import uuid

import pytest
import pytest_asyncio

from activestore import KeyValuePlugin, MemoryPlugin, SQLPlugin, init_db
from activestore.config import reset_settings
from activestore.database import clear_databases
from activestore.events import clear

from .models import STORES


@pytest.fixture(autouse=True)
def reset_state():
    clear_databases()
    clear()
    reset_settings()
    yield
    clear_databases()
    clear()
    reset_settings()


def make_plugin(kind: str, tmp_path):
    if kind == "memory":
        return MemoryPlugin()
    if kind == "keyvalue":
        return KeyValuePlugin()
    return SQLPlugin(f"sqlite:///{tmp_path / 'activestore.db'}", request_timeout=5.0)


@pytest.fixture(params=["memory", "keyvalue", "sql"])
def plugin(request, tmp_path):
    """One plugin per shipped backend"""
    return make_plugin(request.param, tmp_path)


@pytest.fixture
def db_config(plugin):
    return {
        "name": f"test-{uuid.uuid4().hex[:8]}",
        "version": 1,
        "plugin": plugin,
        "stores": STORES,
    }


@pytest_asyncio.fixture
async def connection(db_config):
    """Default connection backed by each backend in turn"""
    conn = await init_db(db_config)
    assert conn is not None
    yield conn
    await conn.close()
    await db_config["plugin"].close()


@pytest_asyncio.fixture
async def memory_connection():
    """Default connection on a fresh memory plugin"""
    conn = await init_db({
        "name": f"memory-{uuid.uuid4().hex[:8]}",
        "version": 1,
        "plugin": MemoryPlugin(),
        "stores": STORES,
    })
    yield conn
    await conn.close()
