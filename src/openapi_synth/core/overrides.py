import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from openapi_synth.core.ports.store import MetadataStore
from openapi_synth.core.sync import RouteKey, route_key
from openapi_synth.models import OverrideRecord, SchemaRecord, SecuritySchemeRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverrideSnapshot:
    routes: dict[RouteKey, OverrideRecord] = field(default_factory=dict)
    schemas: list[SchemaRecord] = field(default_factory=list)
    security_schemes: list[SecuritySchemeRecord] = field(default_factory=list)

    def for_route(self, method: str, path: str) -> OverrideRecord | None:
        return self.routes.get(route_key(method, path))


@dataclass(frozen=True)
class StoreUnavailable:
    reason: str


def empty_snapshot() -> OverrideSnapshot:
    return OverrideSnapshot()


async def load_overrides(store: MetadataStore | None) -> OverrideSnapshot | StoreUnavailable:
    """Read everything the document build needs from the store in one pass.

    Store failures come back as :class:`StoreUnavailable` so the caller can
    continue with auto-detected data only.
    """
    if store is None:
        return StoreUnavailable("no metadata store configured")
    try:
        await store.ensure_ready()
        routes = await store.list_routes()
        schemas = await store.list_schemas()
        security_schemes = await store.list_security_schemes()
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Metadata store unavailable, using auto-detected data only: %s", exc)
        return StoreUnavailable(str(exc))

    return OverrideSnapshot(
        routes={route_key(record.http_method, record.uri): record for record in routes},
        schemas=schemas,
        security_schemes=security_schemes,
    )
