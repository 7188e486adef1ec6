import asyncio
from typing import Annotated

import typer

from openapi_synth.cli.common import (
    DEFAULT_ROUTES_FILE,
    ConfigOption,
    DatabaseUrlOption,
    RoutesOption,
    console,
    fail,
    load_routes,
    load_settings,
    open_optional_store,
    render_counts,
)
from openapi_synth.core.overrides import StoreUnavailable
from openapi_synth.core.serialize import render, save_document
from openapi_synth.core.workflows import run_generate
from openapi_synth.frontend.analyzer import LaravelAnalyzer


def generate(
    routes: RoutesOption = DEFAULT_ROUTES_FILE,
    config: ConfigOption = None,
    output: Annotated[str | None, typer.Option("--output", "-o", help="Output file (overrides config).")] = None,
    format: Annotated[str | None, typer.Option("--format", "-f", help="yaml or json (overrides config).")] = None,
    stdout: Annotated[bool, typer.Option("--stdout", help="Print the document instead of writing a file.")] = False,
    database_url: DatabaseUrlOption = None,
    no_store: Annotated[bool, typer.Option("--no-store", help="Ignore stored overrides.")] = False,
    no_analysis: Annotated[bool, typer.Option("--no-analysis", help="Skip PHP source analysis.")] = False,
) -> None:
    """Generate the OpenAPI document from the route inventory."""
    settings = load_settings(config)
    fmt = (format or settings.output.format).lower()
    if fmt not in ("yaml", "json"):
        raise fail(f"Unsupported format: {fmt} (expected yaml or json)")
    live = load_routes(routes, settings)
    analyzer = None if no_analysis else LaravelAnalyzer(settings)
    opened = None if no_store else open_optional_store(settings, database_url)
    store = None if isinstance(opened, StoreUnavailable) else opened

    async def _run() -> None:
        try:
            result = await run_generate(settings, live, store=store, analyzer=analyzer)
        finally:
            if store is not None:
                await store.dispose()

        if stdout:
            typer.echo(render(result.document, fmt), nl=False)
            return

        if not result.store_available and not no_store:
            console.print("[yellow]Metadata store unavailable; documenting auto-detected data only.[/yellow]")
        target = save_document(result.document, output or settings.output.path, fmt)
        render_counts(result.statistics, title="OpenAPI document")
        if result.diagnostics:
            console.print(f"[yellow]{len(result.diagnostics)} routes produced analysis diagnostics (use -v).[/yellow]")
        console.print(f"[green]Wrote[/green] {target}")

    asyncio.run(_run())
