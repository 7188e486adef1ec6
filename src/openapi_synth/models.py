from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PathParameter(BaseModel):
    name: str
    required: bool = True
    schema_: dict[str, Any] = Field(default_factory=lambda: {"type": "string"}, alias="schema")
    description: str | None = None

    model_config = {"populate_by_name": True}


class RouteDescriptor(BaseModel):
    method: str
    path: str
    name: str | None = None
    controller: str | None = None
    action: str | None = None
    middleware: list[str] = Field(default_factory=list)
    parameters: list[PathParameter] = Field(default_factory=list)
    domain: str | None = None

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str]:
        return (self.method.upper(), self.path)

    @property
    def handler(self) -> str | None:
        if self.controller is None:
            return None
        return f"{self.controller}@{self.action}" if self.action else self.controller


class OverrideRecord(BaseModel):
    """Human-authored documentation stored for one (method, path) pair.

    Every descriptive field is optional: ``None`` lets auto-detection stand,
    any other value (including ``False`` and empty lists) takes precedence.
    """

    http_method: str
    uri: str
    route_name: str | None = None
    controller: str | None = None
    action: str | None = None

    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    deprecated: bool | None = None
    external_docs_url: str | None = None
    external_docs_description: str | None = None

    request_body_description: str | None = None
    request_body_example: Any = None
    request_body_required: bool | None = None
    request_body_schema: dict[str, Any] | None = None

    response_descriptions: dict[str, str] | None = None
    response_examples: dict[str, Any] | None = None
    custom_parameters: list[dict[str, Any]] | None = None
    security_requirements: list[dict[str, list[str]]] | None = None

    is_hidden: bool = False
    auto_detected_data: dict[str, Any] | None = None
    last_scanned_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.http_method.upper(), self.uri)

    @property
    def is_documented(self) -> bool:
        return bool(self.summary) or bool(self.description)


class SchemaRecord(BaseModel):
    name: str
    schema_: dict[str, Any] = Field(default_factory=lambda: {"type": "object"}, alias="schema")
    source_class: str | None = None
    title: str | None = None
    description: str | None = None
    example: Any = None
    is_auto_generated: bool = False

    model_config = {"populate_by_name": True}

    def to_openapi_schema(self) -> dict[str, Any]:
        schema = dict(self.schema_)
        if self.title and "title" not in schema:
            schema["title"] = self.title
        if self.description and "description" not in schema:
            schema["description"] = self.description
        if self.example is not None and "example" not in schema:
            schema["example"] = self.example
        return schema


class SecuritySchemeRecord(BaseModel):
    name: str
    type: str
    api_key_name: str | None = None
    api_key_in: str | None = None
    scheme: str | None = None
    bearer_format: str | None = None
    flows: dict[str, Any] | None = None
    open_id_connect_url: str | None = None
    description: str | None = None
    middleware: list[str] = Field(default_factory=list)
    is_default: bool = False

    def to_openapi(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.description:
            result["description"] = self.description
        if self.type == "apiKey":
            result["name"] = self.api_key_name or "X-API-Key"
            result["in"] = self.api_key_in or "header"
        elif self.type == "http":
            result["scheme"] = self.scheme or "bearer"
            if self.bearer_format:
                result["bearerFormat"] = self.bearer_format
        elif self.type == "oauth2":
            result["flows"] = self.flows or {}
        elif self.type == "openIdConnect":
            result["openIdConnectUrl"] = self.open_id_connect_url or ""
        return result


class SecurityRequirement(BaseModel):
    scheme: str
    scopes: list[str] = Field(default_factory=list)

    def to_openapi(self) -> dict[str, list[str]]:
        return {self.scheme: list(self.scopes)}


class RateLimit(BaseModel):
    requests: int | None = None
    per_seconds: int | None = None
    limiter: str | None = None


class ResponseShape(BaseModel):
    """An inferred response item: a named component plus its collection flag."""

    name: str
    schema_: dict[str, Any] = Field(alias="schema")
    is_collection: bool = False

    model_config = {"populate_by_name": True}


class StatusResponse(BaseModel):
    status: int
    description: str | None = None


class AutoDetected(BaseModel):
    """Everything the analysis front-ends found for a single route."""

    request_class: str | None = None
    request_schema: dict[str, Any] | None = None
    inline_schemas: list[dict[str, Any]] = Field(default_factory=list)
    content_type: str = "application/json"
    query_parameters: list[dict[str, Any]] = Field(default_factory=list)
    responses: list[ResponseShape] = Field(default_factory=list)
    component_schemas: dict[str, dict[str, Any]] = Field(default_factory=dict)
    status_responses: list[StatusResponse] = Field(default_factory=list)
    security: list[SecurityRequirement] = Field(default_factory=list)
    rate_limit: RateLimit | None = None
    diagnostics: list[str] = Field(default_factory=list)


class Parameter(BaseModel):
    name: str
    location: str = Field(alias="in")
    required: bool = False
    schema_: dict[str, Any] = Field(default_factory=lambda: {"type": "string"}, alias="schema")
    description: str | None = None

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "in": self.location, "required": self.required}
        if self.description:
            result["description"] = self.description
        result["schema"] = self.schema_
        return result


class RequestBody(BaseModel):
    required: bool = True
    schema_: dict[str, Any] = Field(default_factory=lambda: {"type": "object"}, alias="schema")
    example: Any = None
    description: str | None = None
    content_type: str = "application/json"

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict[str, Any]:
        media: dict[str, Any] = {"schema": self.schema_}
        if self.example is not None:
            media["example"] = self.example
        result: dict[str, Any] = {}
        if self.description:
            result["description"] = self.description
        result["required"] = self.required
        result["content"] = {self.content_type: media}
        return result


class Response(BaseModel):
    description: str
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    example: Any = None
    headers: dict[str, Any] | None = None

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict[str, Any]:
        result: dict[str, Any] = {"description": self.description}
        if self.headers:
            result["headers"] = self.headers
        if self.schema_ is not None:
            media: dict[str, Any] = {"schema": self.schema_}
            if self.example is not None:
                media["example"] = self.example
            result["content"] = {"application/json": media}
        return result


class OperationDescriptor(BaseModel):
    """One documented (method, path) pair, ready to be placed in ``paths``."""

    method: str
    path: str
    operation_id: str
    summary: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    deprecated: bool = False
    external_docs: dict[str, str] | None = None
    parameters: list[Parameter] = Field(default_factory=list)
    request_body: RequestBody | None = None
    responses: dict[str, Response] = Field(default_factory=dict)
    security: list[dict[str, list[str]]] | None = None

    def to_openapi(self) -> dict[str, Any]:
        operation: dict[str, Any] = {"operationId": self.operation_id, "summary": self.summary}
        if self.description:
            operation["description"] = self.description
        if self.tags:
            operation["tags"] = list(self.tags)
        if self.deprecated:
            operation["deprecated"] = True
        if self.external_docs:
            operation["externalDocs"] = dict(self.external_docs)
        if self.parameters:
            operation["parameters"] = [parameter.to_openapi() for parameter in self.parameters]
        if self.request_body is not None:
            operation["requestBody"] = self.request_body.to_openapi()
        operation["responses"] = {code: response.to_openapi() for code, response in self.responses.items()}
        if self.security is not None:
            operation["security"] = self.security
        return operation
