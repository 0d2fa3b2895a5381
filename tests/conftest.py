"""
Global pytest configuration and fixtures for runonce tests

Provides:
- Temporary SQLite database handle
- Bootstrapped migration engine
- Application table fixture for migrations to alter
- Row counting helpers
"""

import logging

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from runonce.database import MigrationDatabase
from runonce.engine import MigrationEngine
from runonce.models import Migration, MigrationStatement


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def database(tmp_path):
    """MigrationDatabase on a temporary SQLite file.

    A file (not :memory:) so concurrent sessions get their own connections.
    """
    db = MigrationDatabase(str(tmp_path / 'migrations.db'))
    yield db
    try:
        await db.close()
    except Exception as e:
        logging.warning('Error closing test database: %s', e)


@pytest_asyncio.fixture
async def engine(database):
    """Migration engine with the bookkeeping schema in place."""
    engine = MigrationEngine(database)
    result = await engine.bootstrap()
    assert result.success
    return engine


@pytest_asyncio.fixture
async def app_table(database):
    """Application table 'T' for migrations to alter."""
    async with database.engine.begin() as conn:
        await conn.exec_driver_sql('CREATE TABLE T (id INTEGER PRIMARY KEY)')
    return 'T'


# ============================================================================
# Bookkeeping Reader
# ============================================================================

class BookkeepingReader:
    """Reads bookkeeping and application tables for assertions."""

    def __init__(self, database):
        self.database = database

    async def migrations(self, key=None):
        """Count migration rows, optionally only those with a given key."""
        query = select(func.count()).select_from(Migration)
        if key is not None:
            query = query.where(Migration.migration_key == key)
        async with self.database.session() as session:
            return (await session.execute(query)).scalar_one()

    async def statements(self):
        async with self.database.session() as session:
            return (await session.execute(
                select(func.count()).select_from(MigrationStatement)
            )).scalar_one()

    async def keys(self):
        async with self.database.session() as session:
            result = await session.execute(
                select(Migration.migration_key).order_by(Migration.id)
            )
            return list(result.scalars().all())

    async def columns(self, table):
        """Column names of an application table."""
        async with self.database.engine.connect() as conn:
            result = await conn.exec_driver_sql(f'PRAGMA table_info({table})')
            return [row[1] for row in result.fetchall()]


@pytest.fixture
def bookkeeping(database):
    return BookkeepingReader(database)
