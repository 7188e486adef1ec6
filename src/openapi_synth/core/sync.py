"""Classification of live routes against the persisted inventory.

The engine only classifies. Writing the outcome back is left to the scan and
sync workflows.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from openapi_synth.models import OverrideRecord, RouteDescriptor

logger = logging.getLogger(__name__)

RouteKey = tuple[str, str]


@dataclass(frozen=True)
class RouteChange:
    route: RouteDescriptor
    record: OverrideRecord
    changed_fields: tuple[str, ...]


@dataclass(frozen=True)
class SyncDiff:
    new: tuple[RouteDescriptor, ...] = ()
    updated: tuple[RouteChange, ...] = ()
    removed: tuple[OverrideRecord, ...] = ()
    unchanged: tuple[RouteDescriptor, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.new or self.updated or self.removed)

    def counts(self) -> dict[str, int]:
        return {
            "new": len(self.new),
            "updated": len(self.updated),
            "removed": len(self.removed),
            "unchanged": len(self.unchanged),
        }


def route_key(method: str, path: str) -> RouteKey:
    return (method.upper(), path)


def _tracked(route: RouteDescriptor) -> dict[str, str | None]:
    return {"controller": route.controller, "action": route.action, "route_name": route.name}


def _stored(record: OverrideRecord) -> dict[str, str | None]:
    return {"controller": record.controller, "action": record.action, "route_name": record.route_name}


def index_live(live: Iterable[RouteDescriptor]) -> dict[RouteKey, RouteDescriptor]:
    """Index routes by (method, path); a later duplicate replaces an earlier one."""
    indexed: dict[RouteKey, RouteDescriptor] = {}
    for route in live:
        key = route_key(route.method, route.path)
        if key in indexed:
            logger.warning("Duplicate route %s %s; the last registration wins", key[0], key[1])
        indexed[key] = route
    return indexed


class SyncEngine:
    def diff(self, live: Iterable[RouteDescriptor], persisted: Iterable[OverrideRecord]) -> SyncDiff:
        live_by_key = index_live(live)
        persisted_by_key: dict[RouteKey, OverrideRecord] = {}
        for record in persisted:
            persisted_by_key[route_key(record.http_method, record.uri)] = record

        new: list[RouteDescriptor] = []
        updated: list[RouteChange] = []
        unchanged: list[RouteDescriptor] = []
        for key, route in live_by_key.items():
            record = persisted_by_key.get(key)
            if record is None:
                new.append(route)
                continue
            current, stored = _tracked(route), _stored(record)
            changed = tuple(name for name in current if current[name] != stored[name])
            if changed:
                updated.append(RouteChange(route=route, record=record, changed_fields=changed))
            else:
                unchanged.append(route)

        removed = [record for key, record in persisted_by_key.items() if key not in live_by_key]
        return SyncDiff(new=tuple(new), updated=tuple(updated), removed=tuple(removed), unchanged=tuple(unchanged))

    def find_undocumented(self, persisted: Iterable[OverrideRecord]) -> list[OverrideRecord]:
        return [record for record in persisted if not record.is_hidden and not record.is_documented]
