import logging
from collections.abc import Mapping, Sequence
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from openapi_synth.config import ConfigError, GeneratorConfig, load_config
from openapi_synth.core.overrides import StoreUnavailable
from openapi_synth.core.routes import RouteInventoryError, load_route_inventory
from openapi_synth.db.engine import get_engine
from openapi_synth.db.sql import SqlMetadataStore
from openapi_synth.models import RouteDescriptor

logger = logging.getLogger(__name__)

console = Console()

DEFAULT_ROUTES_FILE = "routes.json"

RoutesOption = Annotated[
    str,
    typer.Option("--routes", "-r", help="Route inventory JSON, as written by `php artisan route:list --json`."),
]
ConfigOption = Annotated[str | None, typer.Option("--config", "-c", help="Path to an openapi-synth YAML config.")]
DatabaseUrlOption = Annotated[
    str | None,
    typer.Option("--database-url", help="Metadata store URL (defaults to OPENAPI_SYNTH_DATABASE_URL)."),
]


def fail(message: str) -> typer.Exit:
    console.print(f"[red]{message}[/red]")
    return typer.Exit(1)


def load_settings(config_path: str | None) -> GeneratorConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        raise fail(str(exc)) from exc


def load_routes(routes_path: str, config: GeneratorConfig) -> list[RouteDescriptor]:
    try:
        return load_route_inventory(routes_path, config.route_filters)
    except RouteInventoryError as exc:
        raise fail(str(exc)) from exc


def _create_store(config: GeneratorConfig, database_url: str | None) -> SqlMetadataStore:
    # Unknown dialects raise SQLAlchemyError, drivers that are not installed ImportError.
    return SqlMetadataStore(get_engine(database_url or config.database_url))


def open_store(config: GeneratorConfig, database_url: str | None) -> SqlMetadataStore:
    try:
        return _create_store(config, database_url)
    except (SQLAlchemyError, ImportError) as exc:
        raise fail(f"Cannot open metadata store: {exc}") from exc


def open_optional_store(config: GeneratorConfig, database_url: str | None) -> SqlMetadataStore | StoreUnavailable:
    try:
        return _create_store(config, database_url)
    except (SQLAlchemyError, ImportError) as exc:
        logger.warning("Cannot open metadata store: %s", exc)
        return StoreUnavailable(str(exc))


def render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]], title: str | None = None) -> None:
    table = Table(title=title, show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)


def render_counts(counts: Mapping[str, int], title: str | None = None) -> None:
    render_table(["metric", "count"], [(name, value) for name, value in counts.items()], title=title)
