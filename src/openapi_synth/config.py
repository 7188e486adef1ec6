import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from openapi_synth.models import SecuritySchemeRecord

DEFAULT_CONFIG_FILE = "openapi-synth.yaml"


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or validated."""


class Contact(BaseModel):
    name: str = ""
    email: str = ""
    url: str = ""


class License(BaseModel):
    name: str = ""
    url: str = ""


class Info(BaseModel):
    title: str = Field(default_factory=lambda: os.getenv("OPENAPI_TITLE", "API Documentation"))
    version: str = Field(default_factory=lambda: os.getenv("OPENAPI_VERSION", "1.0.0"))
    description: str = Field(default_factory=lambda: os.getenv("OPENAPI_DESCRIPTION", ""))
    contact: Contact = Field(default_factory=Contact)
    license: License = Field(default_factory=License)

    def to_openapi(self) -> dict[str, Any]:
        info: dict[str, Any] = {"title": self.title, "version": self.version}
        if self.description:
            info["description"] = self.description
        contact = self.contact.model_dump(exclude_defaults=True)
        if contact:
            info["contact"] = contact
        if self.license.name:
            info["license"] = self.license.model_dump(exclude_defaults=True)
        return info


class Server(BaseModel):
    url: str
    description: str | None = None


def _default_servers() -> list[Server]:
    return [Server(url=os.getenv("APP_URL", "http://localhost"), description="Current Environment")]


class RouteFilters(BaseModel):
    include_prefixes: list[str] = Field(default_factory=lambda: ["api/", "v1/", "v2/", "v3/", "v4/"])
    exclude_prefixes: list[str] = Field(default_factory=lambda: ["_ignition", "sanctum", "horizon", "telescope"])
    exclude_middleware: list[str] = Field(default_factory=lambda: ["web"])
    include_middleware: list[str] = Field(default_factory=list)
    exclude_names: list[str] = Field(default_factory=list)


class ResponseMacro(BaseModel):
    status: int
    description: str


def _default_macros() -> dict[str, ResponseMacro]:
    return {
        "show": ResponseMacro(status=200, description="Successful response"),
        "created": ResponseMacro(status=201, description="Resource created"),
        "updated": ResponseMacro(status=200, description="Resource updated"),
        "deleted": ResponseMacro(status=200, description="Resource deleted"),
        "success": ResponseMacro(status=200, description="Operation successful"),
        "error": ResponseMacro(status=400, description="Bad request"),
    }


class DefaultResponse(BaseModel):
    description: str
    schema_: dict[str, Any] = Field(alias="schema")

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "content": {"application/json": {"schema": self.schema_}},
        }


def _message(example: str) -> dict[str, Any]:
    return {"type": "object", "properties": {"message": {"type": "string", "example": example}}}


def _default_error_responses() -> dict[int, DefaultResponse]:
    validation = _message("The given data was invalid.")
    validation["properties"]["errors"] = {
        "type": "object",
        "additionalProperties": {"type": "array", "items": {"type": "string"}},
    }
    return {
        401: DefaultResponse(description="Unauthenticated", schema=_message("Unauthenticated.")),
        403: DefaultResponse(description="Forbidden", schema=_message("This action is unauthorized.")),
        404: DefaultResponse(description="Not Found", schema=_message("Resource not found.")),
        422: DefaultResponse(description="Validation Error", schema=validation),
        500: DefaultResponse(description="Server Error", schema=_message("Server Error")),
    }


class SecuritySchemeConfig(BaseModel):
    type: str
    scheme: str | None = None
    bearer_format: str | None = Field(default=None, alias="bearerFormat")
    location: str | None = Field(default=None, alias="in")
    name: str | None = None
    description: str | None = None
    flows: dict[str, Any] | None = None
    open_id_connect_url: str | None = Field(default=None, alias="openIdConnectUrl")
    middleware: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def to_record(self, scheme_name: str, is_default: bool = False) -> SecuritySchemeRecord:
        return SecuritySchemeRecord(
            name=scheme_name,
            type=self.type,
            api_key_name=self.name,
            api_key_in=self.location,
            scheme=self.scheme,
            bearer_format=self.bearer_format,
            flows=self.flows,
            open_id_connect_url=self.open_id_connect_url,
            description=self.description,
            middleware=list(self.middleware),
            is_default=is_default,
        )


def _default_security_schemes() -> dict[str, SecuritySchemeConfig]:
    return {
        "bearerAuth": SecuritySchemeConfig(
            type="http",
            scheme="bearer",
            bearerFormat="JWT",
            middleware=["auth:sanctum", "auth:api", "auth"],
        ),
        "apiKey": SecuritySchemeConfig(
            type="apiKey",
            location="header",
            name="X-API-Key",
            middleware=["api.key"],
        ),
    }


class OutputConfig(BaseModel):
    path: str = "public/docs/openapi.yaml"
    format: str = "yaml"


class AutoDetection(BaseModel):
    json_resources: bool = True
    form_requests: bool = True
    inline_validation: bool = True
    pagination: bool = True


class TagsConfig(BaseModel):
    from_controller: bool = True
    from_prefix: bool = False
    mappings: dict[str, str] = Field(default_factory=dict)


class SourceConfig(BaseModel):
    root: str = "."
    namespaces: dict[str, str] = Field(default_factory=lambda: {"App\\": "app/"})


class GeneratorConfig(BaseModel):
    openapi_version: str = "3.0.3"
    info: Info = Field(default_factory=Info)
    servers: list[Server] = Field(default_factory=_default_servers)
    route_filters: RouteFilters = Field(default_factory=RouteFilters)
    response_macros: dict[str, ResponseMacro] = Field(default_factory=_default_macros)
    default_responses: dict[int, DefaultResponse] = Field(default_factory=_default_error_responses)
    security_schemes: dict[str, SecuritySchemeConfig] = Field(default_factory=_default_security_schemes)
    output: OutputConfig = Field(default_factory=OutputConfig)
    auto_detection: AutoDetection = Field(default_factory=AutoDetection)
    tags: TagsConfig = Field(default_factory=TagsConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    database_url: str | None = None

    def security_scheme_records(self) -> list[SecuritySchemeRecord]:
        return [
            scheme.to_record(name, is_default=index == 0)
            for index, (name, scheme) in enumerate(self.security_schemes.items())
        ]


def load_config(path: str | Path | None = None) -> GeneratorConfig:
    """Load the YAML configuration, falling back to defaults when no file exists.

    An explicitly given path must exist; the implicit ``openapi-synth.yaml`` in
    the working directory is optional.
    """
    if path is None:
        candidate = Path(DEFAULT_CONFIG_FILE)
        if not candidate.exists():
            return GeneratorConfig()
    else:
        candidate = Path(path)
        if not candidate.exists():
            raise ConfigError(f"Config file not found: {candidate}")

    try:
        data = yaml.safe_load(candidate.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read {candidate}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{candidate} must contain a mapping at the top level")

    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {candidate}: {exc}") from exc
