import asyncio
from typing import Annotated

import typer
from sqlalchemy.exc import SQLAlchemyError

from openapi_synth.cli.common import (
    DEFAULT_ROUTES_FILE,
    ConfigOption,
    DatabaseUrlOption,
    RoutesOption,
    console,
    fail,
    load_routes,
    load_settings,
    open_store,
    render_counts,
    render_table,
)
from openapi_synth.core.workflows import run_scan


def scan(
    routes: RoutesOption = DEFAULT_ROUTES_FILE,
    config: ConfigOption = None,
    database_url: DatabaseUrlOption = None,
    fresh: Annotated[bool, typer.Option("--fresh", help="Clear stored route records before scanning.")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show the changes without writing them.")] = False,
) -> None:
    """Record the live routes in the metadata store."""
    settings = load_settings(config)
    live = load_routes(routes, settings)
    store = open_store(settings, database_url)

    async def _run() -> None:
        try:
            result = await run_scan(store, live, fresh=fresh, dry_run=dry_run)
        except SQLAlchemyError as exc:
            raise fail(f"Metadata store error: {exc}") from exc
        finally:
            await store.dispose()

        if result.cleared:
            console.print(f"Cleared {result.cleared} stored routes.")
        render_counts(result.diff.counts(), title="Route scan")
        if result.diff.new:
            render_table(
                ["method", "uri", "handler"],
                [(route.method, route.path, route.handler or "-") for route in result.diff.new],
                title="New routes",
            )
        if result.diff.removed:
            render_table(
                ["method", "uri"],
                [(record.http_method, record.uri) for record in result.diff.removed],
                title="Removed routes (run `sync --clean` to delete)",
            )
        if result.dry_run:
            console.print("[yellow]Dry run: nothing was written.[/yellow]")
        else:
            console.print(f"[green]Saved[/green] {result.written} route records")

    asyncio.run(_run())
