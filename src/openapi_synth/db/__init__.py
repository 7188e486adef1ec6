from openapi_synth.db.engine import DEFAULT_DATABASE_URL, database_url, get_engine
from openapi_synth.db.memory import InMemoryMetadataStore
from openapi_synth.db.migrations import run_migrations
from openapi_synth.db.sql import SqlMetadataStore
from openapi_synth.db.tables import TABLE_PREFIX, metadata

__all__ = [
    "DEFAULT_DATABASE_URL",
    "TABLE_PREFIX",
    "InMemoryMetadataStore",
    "SqlMetadataStore",
    "database_url",
    "get_engine",
    "metadata",
    "run_migrations",
]
