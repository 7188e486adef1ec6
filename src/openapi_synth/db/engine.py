import os

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///openapi_metadata.db"


def database_url(override: str | None = None) -> str:
    return override or os.getenv("OPENAPI_SYNTH_DATABASE_URL", DEFAULT_DATABASE_URL)


def get_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(database_url(url), future=True)
