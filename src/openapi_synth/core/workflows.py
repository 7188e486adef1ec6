import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from openapi_synth.config import GeneratorConfig
from openapi_synth.core.document import DocumentBuilder, RouteAnalyzer, document_statistics
from openapi_synth.core.overrides import StoreUnavailable, load_overrides
from openapi_synth.core.ports.store import MetadataStore
from openapi_synth.core.sync import SyncDiff, SyncEngine
from openapi_synth.models import OverrideRecord, RouteDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateResult:
    document: dict[str, Any]
    statistics: dict[str, int]
    diagnostics: dict[str, list[str]] = field(default_factory=dict)
    store_available: bool = True


@dataclass(frozen=True)
class ScanResult:
    diff: SyncDiff
    cleared: int = 0
    written: int = 0
    dry_run: bool = False


@dataclass(frozen=True)
class SyncReport:
    live_routes: int
    stored_routes: int
    documented_routes: int
    orphaned: tuple[OverrideRecord, ...]
    missing: tuple[RouteDescriptor, ...]
    undocumented: tuple[OverrideRecord, ...]
    stored_schemas: int
    security_schemes: int
    deleted: int = 0
    security_schemes_written: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "live routes": self.live_routes,
            "stored routes": self.stored_routes,
            "documented routes": self.documented_routes,
            "orphaned routes": len(self.orphaned),
            "stored schemas": self.stored_schemas,
            "security schemes": self.security_schemes,
        }


async def run_generate(
    config: GeneratorConfig,
    routes: Sequence[RouteDescriptor],
    store: MetadataStore | None = None,
    analyzer: RouteAnalyzer | None = None,
) -> GenerateResult:
    """Build the document for ``routes``, layering stored overrides when the store answers."""
    overrides = await load_overrides(store)
    builder = DocumentBuilder(config, analyzer, overrides)
    document = builder.build(routes)
    return GenerateResult(
        document=document,
        statistics=document_statistics(document),
        diagnostics=builder.diagnostics,
        store_available=not isinstance(overrides, StoreUnavailable),
    )


async def run_scan(
    store: MetadataStore,
    routes: Sequence[RouteDescriptor],
    fresh: bool = False,
    dry_run: bool = False,
) -> ScanResult:
    """Reconcile the live routes with the store, writing identity fields only.

    New and updated routes are upserted; removed routes are reported and left
    in place for ``sync --clean``.
    """
    await store.ensure_ready()
    cleared = 0
    if fresh and not dry_run:
        cleared = await store.clear_routes()

    persisted = [] if fresh else await store.list_routes()
    diff = SyncEngine().diff(routes, persisted)
    if dry_run:
        return ScanResult(diff=diff, cleared=cleared, dry_run=True)

    scanned_at = datetime.now(timezone.utc)
    written = 0
    for route in (*diff.new, *(change.route for change in diff.updated)):
        await store.upsert_route_from_scan(route, scanned_at)
        written += 1
    logger.info("Scan wrote %d route records (%s)", written, diff.counts())
    return ScanResult(diff=diff, cleared=cleared, written=written)


async def run_sync(
    config: GeneratorConfig,
    store: MetadataStore,
    routes: Sequence[RouteDescriptor],
    clean: bool = False,
    init_security: bool = False,
    confirm: Callable[[Sequence[OverrideRecord]], bool] | None = None,
) -> SyncReport:
    """Report drift between live routes and the store; optionally delete orphans.

    ``confirm`` is asked before orphans are deleted; without it ``clean`` deletes
    straight away.
    """
    await store.ensure_ready()

    written = 0
    if init_security:
        for record in config.security_scheme_records():
            await store.save_security_scheme(record)
            written += 1

    persisted = await store.list_routes()
    engine = SyncEngine()
    diff = engine.diff(routes, persisted)

    deleted = 0
    if clean and diff.removed and (confirm is None or confirm(diff.removed)):
        for record in diff.removed:
            if await store.delete_route(record.http_method, record.uri):
                deleted += 1
        logger.info("Deleted %d orphaned route records", deleted)

    return SyncReport(
        live_routes=len(diff.new) + len(diff.updated) + len(diff.unchanged),
        stored_routes=len(persisted) - deleted,
        documented_routes=sum(1 for record in persisted if record.is_documented),
        orphaned=diff.removed,
        missing=diff.new,
        undocumented=tuple(engine.find_undocumented(persisted)),
        stored_schemas=len(await store.list_schemas()),
        security_schemes=len(await store.list_security_schemes()),
        deleted=deleted,
        security_schemes_written=written,
    )
