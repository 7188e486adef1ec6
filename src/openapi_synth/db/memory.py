from datetime import datetime

from openapi_synth.core.sync import RouteKey, route_key
from openapi_synth.db.sql import scan_snapshot
from openapi_synth.models import OverrideRecord, RouteDescriptor, SchemaRecord, SecuritySchemeRecord


class InMemoryMetadataStore:
    def __init__(self) -> None:
        self.routes: dict[RouteKey, OverrideRecord] = {}
        self.schemas: dict[str, SchemaRecord] = {}
        self.security_schemes: dict[str, SecuritySchemeRecord] = {}
        self.disposed = False

    async def ensure_ready(self) -> None:
        return None

    async def ping(self) -> bool:
        return not self.disposed

    async def dispose(self) -> None:
        self.disposed = True

    async def list_routes(self) -> list[OverrideRecord]:
        return [self.routes[key] for key in sorted(self.routes, key=lambda k: (k[1], k[0]))]

    async def find_route(self, http_method: str, uri: str) -> OverrideRecord | None:
        return self.routes.get(route_key(http_method, uri))

    async def upsert_route_from_scan(self, route: RouteDescriptor, scanned_at: datetime) -> OverrideRecord:
        key = route_key(route.method, route.path)
        identity = {
            "route_name": route.name,
            "controller": route.controller,
            "action": route.action,
            "auto_detected_data": scan_snapshot(route),
            "last_scanned_at": scanned_at,
        }
        existing = self.routes.get(key)
        if existing is None:
            record = OverrideRecord(http_method=key[0], uri=route.path, **identity)
        else:
            record = existing.model_copy(update=identity)
        self.routes[key] = record
        return record

    async def save_route(self, record: OverrideRecord) -> None:
        self.routes[route_key(record.http_method, record.uri)] = record.model_copy(
            update={"http_method": record.http_method.upper()}
        )

    async def delete_route(self, http_method: str, uri: str) -> bool:
        return self.routes.pop(route_key(http_method, uri), None) is not None

    async def clear_routes(self) -> int:
        count = len(self.routes)
        self.routes.clear()
        return count

    async def list_schemas(self) -> list[SchemaRecord]:
        return [self.schemas[name] for name in sorted(self.schemas)]

    async def save_schema(self, record: SchemaRecord) -> None:
        self.schemas[record.name] = record

    async def list_security_schemes(self) -> list[SecuritySchemeRecord]:
        return list(self.security_schemes.values())

    async def save_security_scheme(self, record: SecuritySchemeRecord) -> None:
        self.security_schemes[record.name] = record
