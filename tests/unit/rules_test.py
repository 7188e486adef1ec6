"""Tests for mapping validation rules to schema fragments."""

import pytest

from openapi_synth.core.ir import RuleObject, RuleObjectKind, RuleToken
from openapi_synth.core.rules import RuleSchemaMapper, is_required, merge_fragments, normalize_rules, top_level_name


@pytest.fixture
def mapper() -> RuleSchemaMapper:
    return RuleSchemaMapper()


def test_email_and_age_scenario(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map({"email": "required|email", "age": "integer|min:18|max:65"})

    assert schema == {
        "type": "object",
        "properties": {
            "email": {"type": "string", "format": "email"},
            "age": {"type": "integer", "minimum": 18, "maximum": 65},
        },
        "required": ["email"],
    }


def test_wildcard_field_becomes_array_of_strings(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map({"tags.*": "string"})

    assert schema == {"type": "object", "properties": {"tags": {"type": "array", "items": {"type": "string"}}}}


def test_type_before_constraint_uses_numeric_bounds(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("integer|min:5") == {"type": "integer", "minimum": 5}


def test_constraint_before_type_uses_the_type_current_at_the_time(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("min:5|integer") == {"type": "integer", "minLength": 5}


def test_size_constraints_follow_the_declared_type(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("string|between:2,10") == {"type": "string", "minLength": 2, "maxLength": 10}
    assert mapper.map_field("array|max:3") == {"type": "array", "items": {"type": "string"}, "maxItems": 3}
    assert mapper.map_field("numeric|size:4") == {"type": "number", "minimum": 4, "maximum": 4}


def test_later_type_token_wins(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("string|integer")["type"] == "integer"


def test_unknown_tokens_are_ignored(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("bail|confirmed|frobnicate:1,2") == {"type": "string"}
    assert mapper.diagnostics == []


def test_formats_and_patterns(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("uuid") == {"type": "string", "format": "uuid"}
    assert mapper.map_field("url") == {"type": "string", "format": "uri"}
    assert mapper.map_field("date_format:Y-m-d H:i:s") == {"type": "string", "format": "date-time"}
    assert mapper.map_field("digits:4") == {"type": "string", "pattern": "^\\d{4}$"}
    assert mapper.map_field("regex:/^[A-Z]{3}$/i") == {"type": "string", "pattern": "^[A-Z]{3}$"}
    assert mapper.map_field("alpha_num") == {"type": "string", "pattern": "^[a-zA-Z0-9]+$"}
    assert mapper.map_field("file|max:2048") == {"type": "string", "format": "binary", "maxLength": 2048}


def test_in_values_are_coerced_for_numeric_types(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("string|in:draft,published") == {"type": "string", "enum": ["draft", "published"]}
    assert mapper.map_field("integer|in:1,2,3") == {"type": "integer", "enum": [1, 2, 3]}


def test_nullable_marks_fragment(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("nullable|string") == {"type": "string", "nullable": True}


def test_list_rules_and_rule_objects(mapper: RuleSchemaMapper) -> None:
    rules = [
        "required",
        RuleObject(
            RuleObjectKind.ENUM,
            class_name="App\\Enums\\Status",
            params={"values": ["1", "2"], "backing": "int"},
        ),
    ]

    assert mapper.map_field(rules) == {"type": "integer", "enum": [1, 2]}


def test_password_and_custom_rule_objects(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field([RuleObject(RuleObjectKind.PASSWORD, params={"min": 12})]) == {
        "type": "string",
        "format": "password",
        "minLength": 12,
    }
    custom = mapper.map_field(["string", RuleObject(RuleObjectKind.CUSTOM, class_name="App\\Rules\\Uppercase")])
    assert custom == {"type": "string", "description": "Custom validation rule: Uppercase"}


def test_enum_without_known_values_describes_the_enum(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map_field([RuleObject(RuleObjectKind.ENUM, class_name="App\\Enums\\Role")])

    assert schema == {"type": "string", "description": "Must be a valid Role value"}


def test_dotted_fields_build_nested_objects(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map(
        {
            "address.street": "required|string",
            "address.zip": "digits:5",
            "address.geo.lat": "numeric",
        }
    )

    address = schema["properties"]["address"]
    assert address["type"] == "object"
    assert address["properties"]["street"] == {"type": "string"}
    assert address["properties"]["zip"] == {"type": "string", "pattern": "^\\d{5}$"}
    assert address["properties"]["geo"]["type"] == "object"
    assert address["properties"]["geo"]["properties"]["lat"] == {"type": "number"}
    assert schema["required"] == ["address"]


def test_wildcard_objects_merge_sibling_fields(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map(
        {
            "items": "required|array|min:1",
            "items.*.sku": "required|string",
            "items.*.quantity": "integer|min:1",
        }
    )

    items = schema["properties"]["items"]
    assert items["type"] == "array"
    assert items["minItems"] == 1
    assert items["items"]["type"] == "object"
    assert items["items"]["properties"] == {
        "sku": {"type": "string"},
        "quantity": {"type": "integer", "minimum": 1},
    }
    assert schema["required"] == ["items"]


def test_parent_rules_after_wildcard_children_keep_items(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map({"tags.*": "integer", "tags": "array|max:5"})

    assert schema["properties"]["tags"] == {"type": "array", "items": {"type": "integer"}, "maxItems": 5}


def test_consecutive_wildcards_nest_arrays(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map({"matrix": "required|array", "matrix.*.*": "integer"})

    assert schema["properties"]["matrix"] == {
        "type": "array",
        "items": {"type": "array", "items": {"type": "integer"}},
    }
    assert schema["required"] == ["matrix"]


def test_wildcards_between_objects(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map({"a.*.b.*.c": "boolean", "a.*.b.*.d": "string"})

    inner = schema["properties"]["a"]["items"]["properties"]["b"]
    assert schema["properties"]["a"]["type"] == "array"
    assert inner["type"] == "array"
    assert inner["items"] == {
        "type": "object",
        "properties": {"c": {"type": "boolean"}, "d": {"type": "string"}},
    }


def test_required_family_and_optional_markers(mapper: RuleSchemaMapper) -> None:
    schema = mapper.map(
        {
            "a": "required|string",
            "b": "sometimes|required|string",
            "c": "required_if:a,x",
            "d": "nullable|string",
            "a.b": "required",
        }
    )

    assert schema["required"] == ["a", "c"]


def test_map_field_never_raises_on_bad_arguments(mapper: RuleSchemaMapper) -> None:
    assert mapper.map_field("integer|min:abc|between:1") == {"type": "integer"}
    assert mapper.map_field(None) == {"type": "string"}


def test_normalize_rules_accepts_all_forms() -> None:
    assert normalize_rules("required|max:5") == [RuleToken("required"), RuleToken("max", "5")]
    assert normalize_rules(["Required", "", "in:a,b"]) == [RuleToken("required"), RuleToken("in", "a,b")]
    obj = RuleObject(RuleObjectKind.UNIQUE)
    assert normalize_rules(obj) == [obj]


def test_is_required_is_decided_by_the_first_marker() -> None:
    assert is_required(normalize_rules("required|nullable"))
    assert not is_required(normalize_rules("nullable|required"))
    assert not is_required(normalize_rules("string"))


def test_top_level_name() -> None:
    assert top_level_name("a.b.c") == "a"
    assert top_level_name("items.*.sku") == "items"
    assert top_level_name("plain") == "plain"


def test_merge_fragments_merges_properties_recursively() -> None:
    base = {"type": "object", "properties": {"a": {"type": "string", "format": "email"}}}
    overlay = {"properties": {"a": {"maxLength": 10}, "b": {"type": "integer"}}, "nullable": True}

    merged = merge_fragments(base, overlay)

    assert merged == {
        "type": "object",
        "properties": {"a": {"type": "string", "format": "email", "maxLength": 10}, "b": {"type": "integer"}},
        "nullable": True,
    }
    assert base["properties"]["a"] == {"type": "string", "format": "email"}
