"""Shared fixtures and asyncpg stand-ins for the test suite."""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

TEST_DB_URL = os.environ.get('MEDX_TEST_DB_URL')

class _AsyncContext:
    """Async context manager yielding a fixed value."""

    def __init__(self, value=None):
        self.value = value

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, exc_type, exc, tb):
        return False

class FakeConnection:
    """Connection double: query methods are AsyncMocks, transactions are no-ops."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")
        self.executemany = AsyncMock(return_value=None)
        self.transaction = MagicMock(side_effect=lambda: _AsyncContext())

class FakePool:
    """Pool double handing out a single FakeConnection."""

    def __init__(self, conn=None):
        self.conn = conn or FakeConnection()

    def acquire(self):
        return _AsyncContext(self.conn)

@pytest.fixture
def fake_conn():
    return FakeConnection()

@pytest.fixture
def fake_pool(fake_conn):
    return FakePool(fake_conn)

@pytest_asyncio.fixture
async def db_pool():
    """Create a fresh schema on the test database and return its pool."""
    from database import init_db, get_pool, close as close_db

    await init_db(TEST_DB_URL, force_recreate=True)
    pool = await get_pool()
    yield pool
    await close_db()
