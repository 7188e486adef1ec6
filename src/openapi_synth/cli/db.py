"""Metadata store commands."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from alembic.util.exc import CommandError
from sqlalchemy.exc import SQLAlchemyError

from openapi_synth.cli.common import ConfigOption, DatabaseUrlOption, console, fail, load_settings, open_store
from openapi_synth.db.engine import database_url as resolve_database_url
from openapi_synth.db.migrations import run_migrations

db_app = typer.Typer(help="Manage the metadata store.")


@db_app.command("migrate")
def migrate(
    config: ConfigOption = None,
    database_url: DatabaseUrlOption = None,
    ini: Annotated[str | None, typer.Option(help="Path to alembic.ini.")] = None,
) -> None:
    """Apply the alembic migrations to the metadata store."""
    settings = load_settings(config)
    url = resolve_database_url(database_url or settings.database_url)
    try:
        run_migrations(url, ini)
    except (CommandError, SQLAlchemyError) as exc:
        raise fail(f"Migration failed: {exc}") from exc
    console.print(f"[green]Database migrated[/green] ({url})")


@db_app.command("status")
def status(
    config: ConfigOption = None,
    database_url: DatabaseUrlOption = None,
) -> None:
    """Check that the metadata store answers."""
    settings = load_settings(config)
    store = open_store(settings, database_url)

    async def _run() -> bool:
        try:
            return await store.ping()
        finally:
            await store.dispose()

    if asyncio.run(_run()):
        console.print("Metadata store: [green]reachable[/green]")
    else:
        console.print("Metadata store: [red]unreachable[/red]")
        raise typer.Exit(1)
