import asyncio
from datetime import datetime, timezone

from openapi_synth.db import InMemoryMetadataStore
from openapi_synth.models import OverrideRecord, SchemaRecord
from tests.conftest import route

SCANNED_AT = datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_upsert_creates_record_with_scan_snapshot(in_memory_store: InMemoryMetadataStore) -> None:
    live = route("get", "/api/users/{user}", action="show", name="users.show", middleware=["auth"])

    record = asyncio.run(in_memory_store.upsert_route_from_scan(live, SCANNED_AT))

    assert record.http_method == "GET"
    assert record.route_name == "users.show"
    assert record.auto_detected_data is not None
    assert record.auto_detected_data["middleware"] == ["auth"]
    assert record.auto_detected_data["parameters"][0]["name"] == "user"
    assert record.last_scanned_at == SCANNED_AT


def test_upsert_preserves_human_fields(in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(
        in_memory_store.save_route(
            OverrideRecord(http_method="GET", uri="/api/users", summary="Browse users", is_hidden=True, tags=["People"])
        )
    )

    record = asyncio.run(in_memory_store.upsert_route_from_scan(route("GET", "/api/users", action="list"), SCANNED_AT))

    assert record.action == "list"
    assert record.summary == "Browse users"
    assert record.is_hidden is True
    assert record.tags == ["People"]


def test_delete_and_clear(in_memory_store: InMemoryMetadataStore) -> None:
    for path in ("/api/a", "/api/b", "/api/c"):
        asyncio.run(in_memory_store.save_route(OverrideRecord(http_method="get", uri=path)))

    assert asyncio.run(in_memory_store.delete_route("GET", "/api/a")) is True
    assert asyncio.run(in_memory_store.delete_route("GET", "/api/a")) is False
    assert [r.uri for r in asyncio.run(in_memory_store.list_routes())] == ["/api/b", "/api/c"]
    assert asyncio.run(in_memory_store.clear_routes()) == 2
    assert asyncio.run(in_memory_store.list_routes()) == []


def test_schemas_are_listed_by_name(in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(in_memory_store.save_schema(SchemaRecord(name="Zone")))
    asyncio.run(in_memory_store.save_schema(SchemaRecord(name="Address", schema={"type": "object"})))

    names = [record.name for record in asyncio.run(in_memory_store.list_schemas())]

    assert names == ["Address", "Zone"]


def test_dispose_makes_ping_fail(in_memory_store: InMemoryMetadataStore) -> None:
    assert asyncio.run(in_memory_store.ping()) is True

    asyncio.run(in_memory_store.dispose())

    assert asyncio.run(in_memory_store.ping()) is False
