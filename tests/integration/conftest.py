"""Fixtures for integration tests against a SQLite metadata store."""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from alembic import command
from alembic.config import Config
from openapi_synth.db import SqlMetadataStore
from tests.conftest import MigrationTestBase


@pytest.fixture
def test_db_url(tmp_path: Path) -> str:
    """Async connection URL for a throwaway SQLite file."""
    return MigrationTestBase.sqlite_url(tmp_path / "metadata.db")


@pytest.fixture
def alembic_config(test_db_url: str) -> Config:
    """Alembic config pointed at the test database."""
    return MigrationTestBase.get_alembic_config(test_db_url)


@pytest.fixture
def _run_migrations(alembic_config: Config) -> Generator[None, None, None]:
    """Migrate to head before the test, back to base afterwards."""
    command.upgrade(alembic_config, "head")
    yield
    command.downgrade(alembic_config, "base")


@pytest_asyncio.fixture
async def database(_run_migrations: None, test_db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test engine so each event loop gets its own connection pool."""
    engine = create_async_engine(test_db_url, future=True)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(database: AsyncEngine) -> AsyncGenerator[SqlMetadataStore, None]:
    """Per-test SqlMetadataStore instance."""
    instance = SqlMetadataStore(database)
    await instance.ensure_ready()
    yield instance
