import logging
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from openapi_synth.core.registry import find_references
from openapi_synth.db.tables import ROUTE_FIELDS, SECURITY_SCHEME_FIELDS, metadata, routes, schemas, security_schemes
from openapi_synth.models import OverrideRecord, RouteDescriptor, SchemaRecord, SecuritySchemeRecord

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def scan_snapshot(route: RouteDescriptor) -> dict[str, Any]:
    return {
        "middleware": list(route.middleware),
        "parameters": [param.model_dump(by_alias=True) for param in route.parameters],
        "domain": route.domain,
    }


def _route_from_row(row: Any) -> OverrideRecord:
    data = {name: row._mapping[name] for name in ROUTE_FIELDS}
    data["is_hidden"] = bool(data["is_hidden"])
    return OverrideRecord.model_validate(data)


def _schema_from_row(row: Any) -> SchemaRecord:
    mapping = row._mapping
    return SchemaRecord(
        name=mapping["name"],
        schema=mapping["schema"] or {"type": "object"},
        source_class=mapping["source_class"],
        title=mapping["title"],
        description=mapping["description"],
        example=mapping["example"],
        is_auto_generated=bool(mapping["is_auto_generated"]),
    )


def _security_scheme_from_row(row: Any) -> SecuritySchemeRecord:
    data = {name: row._mapping[name] for name in SECURITY_SCHEME_FIELDS}
    data["middleware"] = data["middleware"] or []
    data["is_default"] = bool(data["is_default"])
    return SecuritySchemeRecord.model_validate(data)


class SqlMetadataStore:
    """Metadata store on SQLAlchemy's asyncio Core API (SQLite or PostgreSQL)."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def ensure_ready(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(sa.text("SELECT 1"))
        except (sa.exc.SQLAlchemyError, OSError):
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()

    # -- routes ---------------------------------------------------------------

    async def list_routes(self) -> list[OverrideRecord]:
        async with self.engine.connect() as conn:
            result = await conn.execute(sa.select(routes).order_by(routes.c.uri, routes.c.http_method))
            return [_route_from_row(row) for row in result]

    async def _find_route(self, conn: AsyncConnection, http_method: str, uri: str) -> Any:
        result = await conn.execute(
            sa.select(routes).where(routes.c.http_method == http_method.upper(), routes.c.uri == uri)
        )
        return result.first()

    async def find_route(self, http_method: str, uri: str) -> OverrideRecord | None:
        async with self.engine.connect() as conn:
            row = await self._find_route(conn, http_method, uri)
        return _route_from_row(row) if row is not None else None

    async def upsert_route_from_scan(self, route: RouteDescriptor, scanned_at: datetime) -> OverrideRecord:
        identity = {
            "route_name": route.name,
            "controller": route.controller,
            "action": route.action,
            "auto_detected_data": scan_snapshot(route),
            "last_scanned_at": scanned_at,
            "updated_at": _now(),
        }
        async with self.engine.begin() as conn:
            row = await self._find_route(conn, route.method, route.path)
            if row is None:
                await conn.execute(
                    sa.insert(routes).values(
                        http_method=route.method.upper(),
                        uri=route.path,
                        is_hidden=False,
                        created_at=_now(),
                        **identity,
                    )
                )
            else:
                await conn.execute(sa.update(routes).where(routes.c.id == row.id).values(**identity))
            stored = await self._find_route(conn, route.method, route.path)
        return _route_from_row(stored)

    async def save_route(self, record: OverrideRecord) -> None:
        values = record.model_dump(include=set(ROUTE_FIELDS))
        values["http_method"] = record.http_method.upper()
        values["updated_at"] = _now()
        async with self.engine.begin() as conn:
            row = await self._find_route(conn, record.http_method, record.uri)
            if row is None:
                await conn.execute(sa.insert(routes).values(created_at=_now(), **values))
            else:
                await conn.execute(sa.update(routes).where(routes.c.id == row.id).values(**values))

    async def delete_route(self, http_method: str, uri: str) -> bool:
        async with self.engine.begin() as conn:
            result = await conn.execute(
                sa.delete(routes).where(routes.c.http_method == http_method.upper(), routes.c.uri == uri)
            )
        return bool(result.rowcount)

    async def clear_routes(self) -> int:
        async with self.engine.begin() as conn:
            result = await conn.execute(sa.delete(routes))
        logger.info("Cleared %d route records", result.rowcount)
        return int(result.rowcount or 0)

    # -- schemas --------------------------------------------------------------

    async def list_schemas(self) -> list[SchemaRecord]:
        async with self.engine.connect() as conn:
            result = await conn.execute(sa.select(schemas).order_by(schemas.c.name))
            return [_schema_from_row(row) for row in result]

    async def save_schema(self, record: SchemaRecord) -> None:
        values = {
            "name": record.name,
            "source_class": record.source_class,
            "schema": record.schema_,
            "title": record.title,
            "description": record.description,
            "example": record.example,
            "refs": sorted(find_references(record.schema_)),
            "is_auto_generated": record.is_auto_generated,
            "updated_at": _now(),
        }
        async with self.engine.begin() as conn:
            existing = (await conn.execute(sa.select(schemas.c.id).where(schemas.c.name == record.name))).first()
            if existing is None:
                await conn.execute(sa.insert(schemas).values(created_at=_now(), **values))
            else:
                await conn.execute(sa.update(schemas).where(schemas.c.id == existing.id).values(**values))

    # -- security schemes -----------------------------------------------------

    async def list_security_schemes(self) -> list[SecuritySchemeRecord]:
        async with self.engine.connect() as conn:
            result = await conn.execute(sa.select(security_schemes).order_by(security_schemes.c.id))
            return [_security_scheme_from_row(row) for row in result]

    async def save_security_scheme(self, record: SecuritySchemeRecord) -> None:
        values = record.model_dump(include=set(SECURITY_SCHEME_FIELDS))
        values["updated_at"] = _now()
        async with self.engine.begin() as conn:
            existing = (
                await conn.execute(sa.select(security_schemes.c.id).where(security_schemes.c.name == record.name))
            ).first()
            if existing is None:
                await conn.execute(sa.insert(security_schemes).values(created_at=_now(), **values))
            else:
                await conn.execute(
                    sa.update(security_schemes).where(security_schemes.c.id == existing.id).values(**values)
                )
