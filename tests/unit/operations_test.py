"""Tests for per-route operation assembly and override precedence."""

import pytest

from openapi_synth.config import GeneratorConfig, TagsConfig
from openapi_synth.core.operations import (
    OperationAssembler,
    generate_operation_id,
    generate_summary,
    headline,
    normalize_path,
)
from openapi_synth.core.registry import SchemaRegistry
from openapi_synth.models import (
    AutoDetected,
    OverrideRecord,
    RateLimit,
    ResponseShape,
    SecurityRequirement,
    StatusResponse,
)
from tests.conftest import route


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry()


@pytest.fixture
def assembler(registry: SchemaRegistry, config: GeneratorConfig) -> OperationAssembler:
    return OperationAssembler(registry, config)


def test_normalize_path() -> None:
    assert normalize_path("api/users/{user?}") == "/api/users/{user}"
    assert normalize_path("//api/x") == "/api/x"


def test_operation_id_prefers_route_name() -> None:
    assert generate_operation_id(route("GET", "/api/users", name="users.index")) == "users_index"
    assert generate_operation_id(route("GET", "/api/users", action="show")) == "userShow"
    assert generate_operation_id(route("GET", "/x", controller=None, action=None)) == "unknownIndex"


@pytest.mark.parametrize(
    ("action", "expected"),
    [
        ("index", "List Users"),
        ("show", "Get User"),
        ("store", "Create User"),
        ("update", "Update User"),
        ("destroy", "Delete User"),
        ("export", "Export User"),
        ("__invoke", "Invoke User"),
    ],
)
def test_generate_summary(action: str, expected: str) -> None:
    assert generate_summary(route("GET", "/api/users", action=action)) == expected


def test_headline_splits_words() -> None:
    assert headline("UserProfile") == "User Profile"
    assert headline("order_items") == "Order Items"


def test_defaults_without_detection(assembler: OperationAssembler) -> None:
    operation = assembler.assemble(route("GET", "/api/users/{user?}", action="show"))

    assert operation.method == "get"
    assert operation.path == "/api/users/{user}"
    assert operation.operation_id == "userShow"
    assert operation.summary == "Get User"
    assert operation.tags == ["User"]
    assert operation.request_body is None
    assert operation.security is None
    assert [p.name for p in operation.parameters] == ["user"]
    assert operation.parameters[0].required is False
    assert operation.parameters[0].description == "The user identifier"
    assert operation.responses["200"].description == "Resource retrieved successfully"
    assert operation.responses["200"].schema_ == {
        "type": "object",
        "properties": {"data": {"type": "object"}, "message": {"type": "string"}},
    }
    assert set(operation.responses) == {"200", "401", "403", "404", "422", "500"}


def test_collision_free_operation_ids(assembler: OperationAssembler) -> None:
    first = assembler.assemble(route("GET", "/api/a", name="dup"))
    second = assembler.assemble(route("GET", "/api/b", name="dup"))
    third = assembler.assemble(route("GET", "/api/c", name="dup"))

    assert [first.operation_id, second.operation_id, third.operation_id] == ["dup", "dup_2", "dup_3"]


def test_reserved_override_ids_are_skipped_by_generated_ids(assembler: OperationAssembler) -> None:
    assembler.reserve(["dup"])

    generated = assembler.assemble(route("GET", "/api/a", name="dup"))
    chosen = assembler.assemble(
        route("GET", "/api/b"), override=OverrideRecord(http_method="GET", uri="/api/b", operation_id="dup")
    )

    assert (generated.operation_id, chosen.operation_id) == ("dup_2", "dup")


def test_repeated_override_id_gets_a_suffix(assembler: OperationAssembler, caplog: pytest.LogCaptureFixture) -> None:
    first = assembler.assemble(
        route("GET", "/api/a"), override=OverrideRecord(http_method="GET", uri="/api/a", operation_id="custom")
    )
    with caplog.at_level("WARNING"):
        second = assembler.assemble(
            route("GET", "/api/b"), override=OverrideRecord(http_method="GET", uri="/api/b", operation_id="custom")
        )

    assert (first.operation_id, second.operation_id) == ("custom", "custom_2")
    assert "already in use" in caplog.text


def test_store_uses_201_and_request_schema(assembler: OperationAssembler) -> None:
    detected = AutoDetected(
        request_schema={"type": "object", "properties": {"name": {"type": "string"}}},
        inline_schemas=[{"type": "object", "properties": {"ignored": {"type": "string"}}}],
        responses=[ResponseShape(name="UserResource", schema={"type": "object"})],
    )

    operation = assembler.assemble(route("POST", "/api/users", action="store"), detected)

    assert operation.request_body is not None
    assert operation.request_body.schema_["properties"] == {"name": {"type": "string"}}
    assert operation.request_body.content_type == "application/json"
    assert "201" in operation.responses
    assert operation.responses["201"].description == "Resource created successfully"
    assert operation.responses["201"].schema_["properties"]["data"] == {"$ref": "#/components/schemas/UserResource"}


def test_request_body_falls_back_to_inline_then_generic(assembler: OperationAssembler) -> None:
    avatar = {"type": "string", "format": "binary"}
    inline = AutoDetected(inline_schemas=[{"type": "object", "properties": {"avatar": avatar}}])

    with_inline = assembler.assemble(route("PATCH", "/api/users/{user}", action="update"), inline)
    generic = assembler.assemble(route("PUT", "/api/things/{thing}", action="update"))

    assert with_inline.request_body is not None
    assert with_inline.request_body.content_type == "multipart/form-data"
    assert generic.request_body is not None
    assert generic.request_body.schema_ == {"type": "object"}


def test_collection_gets_paginated_envelope_and_page_parameters(
    assembler: OperationAssembler, registry: SchemaRegistry
) -> None:
    detected = AutoDetected(
        responses=[ResponseShape(name="UserResource", schema={"type": "object"}, is_collection=True)],
        component_schemas={"TeamResource": {"type": "object"}},
    )

    operation = assembler.assemble(route("GET", "/api/users"), detected)

    schema = operation.responses["200"].schema_
    assert schema["properties"]["data"] == {"type": "array", "items": {"$ref": "#/components/schemas/UserResource"}}
    assert set(schema["properties"]["meta"]["properties"]) >= {"current_page", "per_page", "total", "path"}
    assert [p.name for p in operation.parameters] == ["page", "per_page"]
    assert "UserResource" in registry
    assert "TeamResource" in registry


def test_generic_shape_does_not_overwrite_registered_schema(
    assembler: OperationAssembler, registry: SchemaRegistry
) -> None:
    registry.add("UserResource", {"type": "object", "properties": {"id": {"type": "integer"}}})

    assembler.assemble(
        route("GET", "/api/users/{user}", action="show"),
        AutoDetected(responses=[ResponseShape(name="UserResource", schema={"type": "object"})]),
    )

    assert registry.get("UserResource") == {"type": "object", "properties": {"id": {"type": "integer"}}}


def test_override_fields_take_precedence(assembler: OperationAssembler) -> None:
    override = OverrideRecord(
        http_method="POST",
        uri="/api/users",
        operation_id="createUser",
        summary="Register a user",
        description="Creates an account.",
        tags=["Accounts"],
        deprecated=True,
        external_docs_url="https://docs.example.com/users",
        request_body_schema={"type": "object", "properties": {"login": {"type": "string"}}},
        request_body_required=False,
        request_body_example={"login": "jane"},
        response_descriptions={"201": "Account created", "418": "Teapot"},
        response_examples={"201": {"data": {"id": 1}}},
        custom_parameters=[
            {"name": "X-Tenant", "in": "header", "required": True},
            {"name": "page", "in": "query"},
        ],
    )
    detected = AutoDetected(request_schema={"type": "object", "properties": {"name": {"type": "string"}}})

    operation = assembler.assemble(route("POST", "/api/users", action="store"), detected, override)

    assert operation.operation_id == "createUser"
    assert operation.summary == "Register a user"
    assert operation.description == "Creates an account."
    assert operation.tags == ["Accounts"]
    assert operation.deprecated is True
    assert operation.external_docs == {"url": "https://docs.example.com/users"}
    assert operation.request_body is not None
    assert operation.request_body.schema_["properties"] == {"login": {"type": "string"}}
    assert operation.request_body.required is False
    assert operation.request_body.example == {"login": "jane"}
    assert operation.responses["201"].description == "Account created"
    assert operation.responses["201"].example == {"data": {"id": 1}}
    assert "418" not in operation.responses
    assert [(p.name, p.location) for p in operation.parameters] == [("X-Tenant", "header"), ("page", "query")]


def test_custom_parameter_does_not_duplicate_existing(assembler: OperationAssembler) -> None:
    override = OverrideRecord(
        http_method="GET",
        uri="/api/users/{user}",
        custom_parameters=[{"name": "user", "in": "path", "required": True}, {"bogus": True}],
    )

    operation = assembler.assemble(route("GET", "/api/users/{user}", action="show"), None, override)

    assert [p.name for p in operation.parameters] == ["user"]


def test_explicit_empty_security_overrides_detected_auth(assembler: OperationAssembler) -> None:
    detected = AutoDetected(security=[SecurityRequirement(scheme="bearerAuth")])
    override = OverrideRecord(http_method="GET", uri="/api/health", security_requirements=[])

    operation = assembler.assemble(route("GET", "/api/health"), detected, override)

    assert operation.security == []
    assert operation.to_openapi()["security"] == []


def test_detected_security_and_inherit(assembler: OperationAssembler) -> None:
    detected = AutoDetected(security=[SecurityRequirement(scheme="bearerAuth", scopes=["read"])])

    secured = assembler.assemble(route("GET", "/api/a"), detected)
    inherited = assembler.assemble(route("GET", "/api/b"), AutoDetected())

    assert secured.security == [{"bearerAuth": ["read"]}]
    assert inherited.security is None
    assert "security" not in inherited.to_openapi()


def test_rate_limit_headers_and_macro_statuses(assembler: OperationAssembler) -> None:
    detected = AutoDetected(
        rate_limit=RateLimit(requests=60, per_seconds=60),
        status_responses=[StatusResponse(status=400, description="Bad request")],
    )

    operation = assembler.assemble(route("GET", "/api/users"), detected)

    headers = operation.responses["200"].headers or {}
    assert headers["X-RateLimit-Limit"]["example"] == 60
    assert operation.responses["400"].description == "Bad request"
    assert operation.responses["400"].schema_ is None


def test_tag_mappings_and_prefix_tags(registry: SchemaRegistry) -> None:
    config = GeneratorConfig(tags=TagsConfig(from_prefix=True, mappings={"UserController": "People"}))
    assembler = OperationAssembler(registry, config)

    mapped = assembler.assemble(route("GET", "/api/users"))
    prefixed = assembler.assemble(route("GET", "/api/v1/order-items/{item}", controller=None, action=None))

    assert mapped.tags == ["People"]
    assert prefixed.tags == ["Order Items"]


def test_operation_to_openapi_key_order(assembler: OperationAssembler) -> None:
    operation = assembler.assemble(route("POST", "/api/users", action="store"))

    assert list(operation.to_openapi()) == ["operationId", "summary", "tags", "requestBody", "responses"]
