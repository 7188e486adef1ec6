import asyncio
from collections.abc import Sequence
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
from openapi_synth.core.workflows import run_sync
from openapi_synth.models import OverrideRecord


def sync(
    routes: RoutesOption = DEFAULT_ROUTES_FILE,
    config: ConfigOption = None,
    database_url: DatabaseUrlOption = None,
    clean: Annotated[bool, typer.Option("--clean", help="Delete stored routes that are no longer live.")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask before deleting.")] = False,
    init_security: Annotated[
        bool, typer.Option("--init-security", help="Store the configured security schemes.")
    ] = False,
) -> None:
    """Compare the live routes with the metadata store."""
    settings = load_settings(config)
    live = load_routes(routes, settings)
    store = open_store(settings, database_url)

    def _confirm(orphans: Sequence[OverrideRecord]) -> bool:
        render_table(["method", "uri"], [(r.http_method, r.uri) for r in orphans], title="Orphaned routes")
        return yes or typer.confirm(f"Delete {len(orphans)} orphaned route records?", default=False)

    async def _run() -> None:
        try:
            report = await run_sync(
                settings, store, live, clean=clean, init_security=init_security, confirm=_confirm
            )
        except SQLAlchemyError as exc:
            raise fail(f"Metadata store error: {exc}") from exc
        finally:
            await store.dispose()

        if report.security_schemes_written:
            console.print(f"[green]Stored[/green] {report.security_schemes_written} security schemes")
        if report.orphaned and not clean:
            render_table(
                ["method", "uri"],
                [(r.http_method, r.uri) for r in report.orphaned],
                title="Orphaned routes (use --clean to delete)",
            )
        if report.deleted:
            console.print(f"[green]Deleted[/green] {report.deleted} orphaned route records")
        if report.missing:
            render_table(
                ["method", "uri"],
                [(route.method, route.path) for route in report.missing],
                title="Live routes missing from the store (run `scan`)",
            )
        if report.undocumented:
            render_table(
                ["method", "uri"],
                [(r.http_method, r.uri) for r in report.undocumented],
                title="Routes without summary or description",
            )
        render_counts(report.summary(), title="Metadata store")

    asyncio.run(_run())
