import copy
import logging
import re
from collections.abc import Iterable
from typing import Any

from openapi_synth.config import GeneratorConfig
from openapi_synth.core.ir import class_basename
from openapi_synth.core.registry import SchemaRegistry
from openapi_synth.core.rules import contains_binary
from openapi_synth.core.security import rate_limit_headers
from openapi_synth.models import (
    AutoDetected,
    OperationDescriptor,
    OverrideRecord,
    Parameter,
    RequestBody,
    Response,
    RouteDescriptor,
)

logger = logging.getLogger(__name__)

_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH"})
_CREATE_ACTIONS = frozenset({"store", "create"})
_OPTIONAL_PARAM = re.compile(r"\{(\w+)\?\}")
_VERSION_SEGMENT = re.compile(r"^v\d+$")
_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_GENERIC_OBJECT: dict[str, Any] = {"type": "object"}

_SUMMARIES = {
    "index": "List {resource}s",
    "show": "Get {resource}",
    "store": "Create {resource}",
    "create": "Create {resource}",
    "update": "Update {resource}",
    "destroy": "Delete {resource}",
    "delete": "Delete {resource}",
}

_SUCCESS_DESCRIPTIONS = {
    "index": "List retrieved successfully",
    "show": "Resource retrieved successfully",
    "update": "Resource updated successfully",
    "destroy": "Resource deleted successfully",
    "delete": "Resource deleted successfully",
}


def normalize_path(path: str) -> str:
    """Single leading slash; ``{id?}`` becomes ``{id}``."""
    return _OPTIONAL_PARAM.sub(r"{\1}", "/" + path.strip().lstrip("/"))


def resource_name(controller: str | None) -> str:
    if not controller:
        return "Resource"
    name = class_basename(controller).replace("Controller", "")
    return name or "Resource"


def headline(name: str) -> str:
    spaced = _WORD_BOUNDARY.sub(" ", name).replace("_", " ").replace("-", " ")
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def _ucfirst(text: str) -> str:
    return text[:1].upper() + text[1:]


def _lcfirst(text: str) -> str:
    return text[:1].lower() + text[1:]


def generate_operation_id(route: RouteDescriptor) -> str:
    if route.name:
        return route.name.replace(".", "_")
    controller = class_basename(route.controller or "Unknown").replace("Controller", "")
    action = (route.action or "index").lstrip("_")
    return _lcfirst(controller) + _ucfirst(action)


def generate_summary(route: RouteDescriptor) -> str:
    action = route.action or "unknown"
    resource = resource_name(route.controller)
    template = _SUMMARIES.get(action)
    if template is not None:
        return template.format(resource=resource)
    return f"{_ucfirst(action.lstrip('_'))} {resource}"


def success_status(route: RouteDescriptor) -> int:
    if route.method.upper() == "POST" and route.action in _CREATE_ACTIONS:
        return 201
    return 200


def success_description(status: int, action: str | None) -> str:
    if status == 201:
        return "Resource created successfully"
    if status == 204:
        return "No content"
    return _SUCCESS_DESCRIPTIONS.get(action or "", "Successful response")


def data_envelope(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "data": item,
            "message": {"type": "string"},
        },
    }


def paginated_envelope(item: dict[str, Any]) -> dict[str, Any]:
    def nullable_uri() -> dict[str, Any]:
        return {"type": "string", "format": "uri", "nullable": True}

    return {
        "type": "object",
        "properties": {
            "data": {"type": "array", "items": item},
            "links": {
                "type": "object",
                "properties": {
                    "first": nullable_uri(),
                    "last": nullable_uri(),
                    "prev": nullable_uri(),
                    "next": nullable_uri(),
                },
            },
            "meta": {
                "type": "object",
                "properties": {
                    "current_page": {"type": "integer"},
                    "from": {"type": "integer", "nullable": True},
                    "last_page": {"type": "integer"},
                    "path": {"type": "string"},
                    "per_page": {"type": "integer"},
                    "to": {"type": "integer", "nullable": True},
                    "total": {"type": "integer"},
                },
            },
            "message": {"type": "string"},
        },
    }


def pagination_parameters() -> list[Parameter]:
    return [
        Parameter(
            name="page",
            location="query",
            required=False,
            schema={"type": "integer", "minimum": 1, "default": 1},
            description="Page number",
        ),
        Parameter(
            name="per_page",
            location="query",
            required=False,
            schema={"type": "integer", "minimum": 1, "maximum": 100, "default": 15},
            description="Items per page",
        ),
    ]


class OperationAssembler:
    """Builds one operation per route; one instance lives for one document build.

    Override values win field by field. ``None`` on the override means "not
    set", so an explicit ``[]`` for security or tags still takes effect.
    """

    def __init__(self, registry: SchemaRegistry, config: GeneratorConfig) -> None:
        self._registry = registry
        self._config = config
        self._used_ids: set[str] = set()
        self._reserved: set[str] = set()

    def assemble(
        self,
        route: RouteDescriptor,
        detected: AutoDetected | None = None,
        override: OverrideRecord | None = None,
    ) -> OperationDescriptor:
        detected = detected or AutoDetected()
        external_docs = None
        if override is not None and override.external_docs_url:
            external_docs = {"url": override.external_docs_url}
            if override.external_docs_description:
                external_docs["description"] = override.external_docs_description

        return OperationDescriptor(
            method=route.method.lower(),
            path=normalize_path(route.path),
            operation_id=self._operation_id(route, override),
            summary=(override.summary if override and override.summary is not None else generate_summary(route)),
            description=override.description if override else None,
            tags=self._tags(route, override),
            deprecated=bool(override and override.deprecated),
            external_docs=external_docs,
            parameters=self._parameters(route, detected, override),
            request_body=self._request_body(route, detected, override),
            responses=self._responses(route, detected, override),
            security=self._security(detected, override),
        )

    def reserve(self, operation_ids: Iterable[str]) -> None:
        """Keep override ids free so generated ids never take them first."""
        self._reserved.update(operation_ids)

    def _operation_id(self, route: RouteDescriptor, override: OverrideRecord | None) -> str:
        if override is not None and override.operation_id is not None:
            requested = override.operation_id
            if requested not in self._used_ids:
                self._used_ids.add(requested)
                return requested
            unique = self._unique_id(requested)
            logger.warning(
                "Operation id %s for %s %s is already in use, using %s", requested, route.method, route.path, unique
            )
            return unique

        return self._unique_id(generate_operation_id(route))

    def _unique_id(self, base: str) -> str:
        candidate = base
        suffix = 2
        while candidate in self._used_ids or candidate in self._reserved:
            candidate = f"{base}_{suffix}"
            suffix += 1
        self._used_ids.add(candidate)
        return candidate

    def _tags(self, route: RouteDescriptor, override: OverrideRecord | None) -> list[str]:
        if override is not None and override.tags is not None:
            return list(override.tags)

        settings = self._config.tags
        if settings.from_controller and route.controller:
            basename = class_basename(route.controller)
            if basename in settings.mappings:
                return [settings.mappings[basename]]
            tag = headline(basename.replace("Controller", ""))
            if tag:
                return [tag]

        if settings.from_prefix:
            segments = [segment for segment in route.path.strip("/").split("/") if segment]
            if segments and segments[0] == "api":
                segments = segments[1:]
            segments = [s for s in segments if not _VERSION_SEGMENT.match(s) and not s.startswith("{")]
            if segments:
                return [headline(segments[0])]
        return []

    def _parameters(
        self,
        route: RouteDescriptor,
        detected: AutoDetected,
        override: OverrideRecord | None,
    ) -> list[Parameter]:
        parameters = [
            Parameter(
                name=param.name,
                location="path",
                required=param.required,
                schema=copy.deepcopy(param.schema_),
                description=param.description or f"The {param.name} identifier",
            )
            for param in route.parameters
        ]

        for query in detected.query_parameters:
            parameters.append(Parameter.model_validate({"in": "query", **query}))

        first = detected.responses[0] if detected.responses else None
        if (
            self._config.auto_detection.pagination
            and route.method.upper() == "GET"
            and first is not None
            and first.is_collection
        ):
            taken = {(p.name, p.location) for p in parameters}
            parameters.extend(p for p in pagination_parameters() if (p.name, p.location) not in taken)

        if override is not None and override.custom_parameters:
            for custom in override.custom_parameters:
                try:
                    parameter = Parameter.model_validate(custom)
                except ValueError as exc:
                    logger.warning("Ignoring custom parameter %r on %s %s: %s", custom, route.method, route.path, exc)
                    continue
                if any(p.name == parameter.name and p.location == parameter.location for p in parameters):
                    continue
                parameters.append(parameter)
        return parameters

    def _request_body(
        self,
        route: RouteDescriptor,
        detected: AutoDetected,
        override: OverrideRecord | None,
    ) -> RequestBody | None:
        if route.method.upper() not in _WRITE_METHODS:
            return None

        if override is not None and override.request_body_schema is not None:
            schema = override.request_body_schema
        elif detected.request_schema is not None:
            schema = detected.request_schema
        elif detected.inline_schemas:
            schema = detected.inline_schemas[0]
        else:
            schema = dict(_GENERIC_OBJECT)

        content_type = "multipart/form-data" if contains_binary(schema) else detected.content_type
        self._registry.note_references(schema)
        return RequestBody(
            required=(
                override.request_body_required
                if override is not None and override.request_body_required is not None
                else True
            ),
            schema=copy.deepcopy(schema),
            example=override.request_body_example if override else None,
            description=override.request_body_description if override else None,
            content_type=content_type,
        )

    def _success_schema(self, detected: AutoDetected) -> dict[str, Any]:
        if not detected.responses:
            return {
                "type": "object",
                "properties": {"data": {"type": "object"}, "message": {"type": "string"}},
            }
        shape = detected.responses[0]
        if shape.name not in self._registry or shape.schema_ != _GENERIC_OBJECT:
            self._registry.add(shape.name, shape.schema_)
        for name, fragment in detected.component_schemas.items():
            if name not in self._registry:
                self._registry.add(name, fragment)
        item = self._registry.ref(shape.name)
        return paginated_envelope(item) if shape.is_collection else data_envelope(item)

    def _responses(
        self,
        route: RouteDescriptor,
        detected: AutoDetected,
        override: OverrideRecord | None,
    ) -> dict[str, Response]:
        status = success_status(route)
        responses: dict[str, Response] = {
            str(status): Response(
                description=success_description(status, route.action),
                schema=self._success_schema(detected),
                headers=rate_limit_headers(detected.rate_limit) or None,
            )
        }

        for detected_status in detected.status_responses:
            code = str(detected_status.status)
            if code not in responses:
                responses[code] = Response(description=detected_status.description or "Response")

        for code, default in self._config.default_responses.items():
            if str(code) not in responses:
                responses[str(code)] = Response(description=default.description, schema=copy.deepcopy(default.schema_))

        if override is not None:
            for code, description in (override.response_descriptions or {}).items():
                if str(code) in responses:
                    responses[str(code)].description = description
            for code, example in (override.response_examples or {}).items():
                response = responses.get(str(code))
                if response is not None and response.schema_ is not None:
                    response.example = copy.deepcopy(example)
        return responses

    def _security(self, detected: AutoDetected, override: OverrideRecord | None) -> list[dict[str, list[str]]] | None:
        if override is not None and override.security_requirements is not None:
            return [dict(requirement) for requirement in override.security_requirements]
        if not detected.security:
            return None
        return [requirement.to_openapi() for requirement in detected.security]
