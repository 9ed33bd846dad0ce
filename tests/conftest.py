"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings
os.environ.setdefault("TGI_CONNECTION_STRING", "sqlite+aiosqlite://")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from tests.fake_node import FakeNode
from tgi.config.database import create_session_maker
from tgi.config.settings import Settings
from tgi.models import Base
from tgi.services.ingestion import IngestionPipeline


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database: nothing is stored."""
    session = AsyncMock()
    result = MagicMock()
    result.one_or_none.return_value = None
    result.scalar.return_value = None
    session.execute = AsyncMock(return_value=result)
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def settings():
    return Settings(
        connection_string="sqlite+aiosqlite://",
        node_sync_poll_interval=0,
    )


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def make_pipeline(settings, session_maker, node):
    """Factory for pipelines sharing one database (restarts)."""

    def factory(**overrides) -> IngestionPipeline:
        pipeline_settings = settings.model_copy(update=overrides)
        pipeline = IngestionPipeline(pipeline_settings, session_maker, node)
        pipeline.missing_block_retry_delay = 0
        pipeline.db_retry_delay = 0
        return pipeline

    return factory


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()
