import asyncio
from collections.abc import Sequence

from openapi_synth.config import GeneratorConfig
from openapi_synth.core.workflows import run_generate, run_scan, run_sync
from openapi_synth.db import InMemoryMetadataStore
from openapi_synth.models import OverrideRecord
from tests.conftest import route

LIVE = [
    route("GET", "/api/users", name="users.index"),
    route("POST", "/api/users", action="store", name="users.store"),
]


def test_scan_writes_new_routes(in_memory_store: InMemoryMetadataStore) -> None:
    result = asyncio.run(run_scan(in_memory_store, LIVE))

    assert result.written == 2
    assert result.diff.counts() == {"new": 2, "updated": 0, "removed": 0, "unchanged": 0}
    assert set(in_memory_store.routes) == {("GET", "/api/users"), ("POST", "/api/users")}

    again = asyncio.run(run_scan(in_memory_store, LIVE))
    assert again.written == 0
    assert len(again.diff.unchanged) == 2


def test_scan_dry_run_writes_nothing(in_memory_store: InMemoryMetadataStore) -> None:
    result = asyncio.run(run_scan(in_memory_store, LIVE, dry_run=True))

    assert result.dry_run is True
    assert len(result.diff.new) == 2
    assert in_memory_store.routes == {}


def test_scan_leaves_removed_routes_in_place(in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(in_memory_store.save_route(OverrideRecord(http_method="GET", uri="/api/legacy", summary="Old")))

    result = asyncio.run(run_scan(in_memory_store, LIVE))

    assert [r.uri for r in result.diff.removed] == ["/api/legacy"]
    assert ("GET", "/api/legacy") in in_memory_store.routes


def test_fresh_scan_clears_first(in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(in_memory_store.save_route(OverrideRecord(http_method="GET", uri="/api/legacy")))

    result = asyncio.run(run_scan(in_memory_store, LIVE, fresh=True))

    assert result.cleared == 1
    assert result.written == 2
    assert ("GET", "/api/legacy") not in in_memory_store.routes


def test_sync_reports_without_deleting(config: GeneratorConfig, in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(in_memory_store.save_route(OverrideRecord(http_method="GET", uri="/api/users", summary="List")))
    asyncio.run(in_memory_store.save_route(OverrideRecord(http_method="GET", uri="/api/legacy")))

    report = asyncio.run(run_sync(config, in_memory_store, LIVE))

    assert [r.uri for r in report.orphaned] == ["/api/legacy"]
    assert [(r.method, r.path) for r in report.missing] == [("POST", "/api/users")]
    assert [r.uri for r in report.undocumented] == ["/api/legacy"]
    assert report.deleted == 0
    assert report.summary()["documented routes"] == 1
    assert len(in_memory_store.routes) == 2


def test_sync_clean_asks_before_deleting(config: GeneratorConfig, in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(in_memory_store.save_route(OverrideRecord(http_method="GET", uri="/api/legacy")))
    asked: list[Sequence[OverrideRecord]] = []

    def decline(orphans: Sequence[OverrideRecord]) -> bool:
        asked.append(orphans)
        return False

    declined = asyncio.run(run_sync(config, in_memory_store, LIVE, clean=True, confirm=decline))
    assert declined.deleted == 0
    assert len(asked) == 1

    accepted = asyncio.run(run_sync(config, in_memory_store, LIVE, clean=True, confirm=lambda orphans: True))
    assert accepted.deleted == 1
    assert accepted.stored_routes == 0
    assert in_memory_store.routes == {}


def test_sync_init_security(config: GeneratorConfig, in_memory_store: InMemoryMetadataStore) -> None:
    report = asyncio.run(run_sync(config, in_memory_store, LIVE, init_security=True))

    assert report.security_schemes_written == 2
    assert report.security_schemes == 2
    assert in_memory_store.security_schemes["bearerAuth"].is_default is True


def test_generate_uses_stored_overrides(config: GeneratorConfig, in_memory_store: InMemoryMetadataStore) -> None:
    asyncio.run(
        in_memory_store.save_route(
            OverrideRecord(http_method="POST", uri="/api/users", summary="Register", tags=["Accounts"])
        )
    )

    result = asyncio.run(run_generate(config, LIVE, in_memory_store))

    operation = result.document["paths"]["/api/users"]["post"]
    assert result.store_available is True
    assert operation["summary"] == "Register"
    assert operation["tags"] == ["Accounts"]
    assert result.statistics["operations"] == 2


def test_generate_without_store(config: GeneratorConfig) -> None:
    result = asyncio.run(run_generate(config, LIVE))

    assert result.store_available is False
    assert result.document["paths"]["/api/users"]["get"]["summary"] == "List Users"
