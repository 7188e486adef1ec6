import json
import logging
import re
from pathlib import Path
from typing import Any

from openapi_synth.config import RouteFilters
from openapi_synth.models import PathParameter, RouteDescriptor

logger = logging.getLogger(__name__)

_PARAM_PATTERN = re.compile(r"\{(\w+)(\?)?\}")
_SKIPPED_METHODS = frozenset({"HEAD"})


class RouteInventoryError(Exception):
    """The route inventory could not be read; nothing can be generated."""


def parse_handler(action: str | None) -> tuple[str | None, str | None]:
    """Split ``Controller@action``; a bare class name is an invokable controller."""
    if not action or action == "Closure":
        return None, None
    if "@" in action:
        controller, _, method = action.partition("@")
        return (controller or None), (method or None)
    if "\\" in action or action.endswith("Controller"):
        return action, "__invoke"
    return None, None


def normalize_path(uri: str) -> str:
    return "/" + uri.strip().lstrip("/")


def infer_parameter_schema(name: str, where: str | None = None) -> dict[str, Any]:
    if where is not None:
        if "[a-f0-9]" in where or "uuid" in where:
            return {"type": "string", "format": "uuid", "pattern": where}
        if where in ("\\d+", "[0-9]+"):
            return {"type": "integer", "pattern": where}
    if name.endswith("_id") or name == "id":
        schema: dict[str, Any] = {"type": "string", "format": "uuid"}
    else:
        schema = {"type": "string"}
    if where is not None:
        schema["pattern"] = where
    return schema


def extract_parameters(uri: str, wheres: dict[str, str] | None = None) -> list[PathParameter]:
    wheres = wheres or {}
    return [
        PathParameter(
            name=match.group(1),
            required=match.group(2) is None,
            schema=infer_parameter_schema(match.group(1), wheres.get(match.group(1))),
        )
        for match in _PARAM_PATTERN.finditer(uri)
    ]


def _middleware_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split("\n") if part.strip()]
    return [str(item) for item in value]


def _methods(value: Any) -> list[str]:
    if isinstance(value, str):
        raw = value.split("|")
    else:
        raw = [str(item) for item in value or []]
    return [method.strip().upper() for method in raw if method.strip().upper() not in _SKIPPED_METHODS]


def should_include(uri: str, middleware: list[str], name: str | None, filters: RouteFilters) -> bool:
    bare = uri.lstrip("/")
    if any(bare.startswith(prefix) for prefix in filters.exclude_prefixes):
        return False
    if filters.include_prefixes and not any(bare.startswith(prefix) for prefix in filters.include_prefixes):
        return False
    if any(excluded in middleware for excluded in filters.exclude_middleware):
        return False
    if filters.include_middleware and not any(required in middleware for required in filters.include_middleware):
        return False
    if name:
        for pattern in filters.exclude_names:
            try:
                if re.search(pattern.strip("/"), name):
                    return False
            except re.error:
                logger.warning("Ignoring invalid exclude_names pattern %r", pattern)
    return True


def parse_route_inventory(entries: Any, filters: RouteFilters | None = None) -> list[RouteDescriptor]:
    """Turn ``route:list --json`` entries into one descriptor per HTTP method."""
    if not isinstance(entries, list):
        raise RouteInventoryError("Route inventory must be a JSON list of routes")

    descriptors: list[RouteDescriptor] = []
    for entry in entries:
        if not isinstance(entry, dict) or "uri" not in entry:
            raise RouteInventoryError(f"Malformed route entry: {entry!r}")

        uri = str(entry["uri"])
        name = entry.get("name") or None
        middleware = _middleware_list(entry.get("middleware"))
        controller, action = parse_handler(entry.get("action"))
        if controller is None:
            logger.debug("Skipping closure route %s", uri)
            continue
        if filters is not None and not should_include(uri, middleware, name, filters):
            continue

        path = normalize_path(uri)
        parameters = extract_parameters(path, entry.get("wheres"))
        for method in _methods(entry.get("method", "GET")):
            descriptors.append(
                RouteDescriptor(
                    method=method,
                    path=path,
                    name=name,
                    controller=controller,
                    action=action,
                    middleware=middleware,
                    parameters=parameters,
                    domain=entry.get("domain"),
                )
            )
    return descriptors


def load_route_inventory(path: str | Path, filters: RouteFilters | None = None) -> list[RouteDescriptor]:
    inventory_path = Path(path)
    try:
        data = json.loads(inventory_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise RouteInventoryError(f"Route inventory not found: {path}") from None
    except (OSError, json.JSONDecodeError) as exc:
        raise RouteInventoryError(f"Could not read route inventory {path}: {exc}") from exc
    return parse_route_inventory(data, filters)
