import copy
import logging
from collections.abc import Iterable
from typing import Any

from openapi_synth.core.shapes import REF_PREFIX
from openapi_synth.models import SchemaRecord

logger = logging.getLogger(__name__)

Fragment = dict[str, Any]


def find_references(fragment: Any, prefix: str = REF_PREFIX) -> set[str]:
    """Collect every schema name referenced via ``$ref`` under ``prefix``."""
    found: set[str] = set()
    if isinstance(fragment, dict):
        ref = fragment.get("$ref")
        if isinstance(ref, str) and ref.startswith(prefix):
            found.add(ref[len(prefix) :])
        for key, value in fragment.items():
            if key != "$ref":
                found |= find_references(value, prefix)
    elif isinstance(fragment, list):
        for value in fragment:
            found |= find_references(value, prefix)
    return found


class SchemaRegistry:
    """Named schema fragments for one document build.

    Every name handed out by :meth:`ref` or found inside an added fragment is
    tracked; :meth:`build` guarantees each of them resolves.
    """

    def __init__(self, external: Iterable[SchemaRecord] = (), prefix: str = REF_PREFIX) -> None:
        self.prefix = prefix
        self._schemas: dict[str, Fragment] = {}
        self._dependencies: dict[str, set[str]] = {}
        self._referenced: set[str] = set()
        self._external = list(external)

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def add(self, name: str, fragment: Fragment) -> None:
        if name in self._schemas:
            logger.debug("Schema %s replaced", name)
        self._schemas[name] = copy.deepcopy(fragment)
        self._dependencies[name] = find_references(fragment, self.prefix)

    def get(self, name: str) -> Fragment | None:
        fragment = self._schemas.get(name)
        return copy.deepcopy(fragment) if fragment is not None else None

    def ref(self, name: str) -> Fragment:
        self._referenced.add(name)
        return {"$ref": f"{self.prefix}{name}"}

    def note_references(self, fragment: Any) -> None:
        """Record names referenced from fragments that live outside the registry."""
        self._referenced |= find_references(fragment, self.prefix)

    def dependencies(self, name: str) -> set[str]:
        return set(self._dependencies.get(name, set()))

    def unresolved(self) -> set[str]:
        wanted = set(self._referenced)
        for deps in self._dependencies.values():
            wanted |= deps
        return wanted - set(self._schemas)

    def build(self) -> dict[str, Fragment]:
        for record in self._external:
            existing = self._schemas.get(record.name)
            if existing is None:
                self.add(record.name, record.to_openapi_schema())
                continue
            if record.description and "description" not in existing:
                existing["description"] = record.description
            if record.example is not None and "example" not in existing:
                existing["example"] = copy.deepcopy(record.example)

        # Placeholders never reference anything, so one pass suffices.
        for name in sorted(self.unresolved()):
            logger.debug("Adding placeholder schema for %s", name)
            self.add(name, {"type": "object", "description": f"Auto-generated placeholder for {name}"})

        return {name: copy.deepcopy(fragment) for name, fragment in self._schemas.items()}
