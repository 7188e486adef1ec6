from datetime import datetime
from typing import Protocol

from openapi_synth.models import OverrideRecord, RouteDescriptor, SchemaRecord, SecuritySchemeRecord


class MetadataStore(Protocol):
    async def ensure_ready(self) -> None: ...

    async def list_routes(self) -> list[OverrideRecord]: ...

    async def find_route(self, http_method: str, uri: str) -> OverrideRecord | None: ...

    async def upsert_route_from_scan(self, route: RouteDescriptor, scanned_at: datetime) -> OverrideRecord: ...

    async def save_route(self, record: OverrideRecord) -> None: ...

    async def delete_route(self, http_method: str, uri: str) -> bool: ...

    async def clear_routes(self) -> int: ...

    async def list_schemas(self) -> list[SchemaRecord]: ...

    async def save_schema(self, record: SchemaRecord) -> None: ...

    async def list_security_schemes(self) -> list[SecuritySchemeRecord]: ...

    async def save_security_scheme(self, record: SecuritySchemeRecord) -> None: ...

    async def ping(self) -> bool: ...

    async def dispose(self) -> None: ...
