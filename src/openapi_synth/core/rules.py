"""Validation rules to OpenAPI schema fragments.

Tokens are applied strictly left to right on top of ``{"type": "string"}``.
Size constraints (``min``, ``max``, ``between``, ``size``) read the type that
is current when they are applied, so ``integer|min:1`` and ``min:1|integer``
deliberately produce different fragments.
"""

import copy
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from openapi_synth.core.ir import RuleExpression, RuleItem, RuleObject, RuleObjectKind, RuleToken, class_basename

logger = logging.getLogger(__name__)

Fragment = dict[str, Any]

DEFAULT_ARRAY_ITEMS: Fragment = {"type": "string"}

_REQUIRED_FAMILY = frozenset({"required", "required_if", "required_unless"})
_OPTIONAL_FAMILY = frozenset({"sometimes", "nullable"})
_NUMERIC_TYPES = frozenset({"integer", "number"})
_REGEX_DELIMITED = re.compile(r"^([/#~!%])(.*)\1[a-zA-Z]*$", re.DOTALL)

_DATE_FORMATS = {
    "Y-m-d": "date",
    "Y-m-d H:i:s": "date-time",
    "Y-m-d\\TH:i:s\\Z": "date-time",
    "Y-m-d\\TH:i:sP": "date-time",
    "c": "date-time",
    "H:i:s": "time",
    "H:i": "time",
}

_BOUND_KEYS = {
    "integer": ("minimum", "maximum"),
    "number": ("minimum", "maximum"),
    "string": ("minLength", "maxLength"),
    "array": ("minItems", "maxItems"),
}


def merge_fragments(base: Fragment, overlay: Fragment) -> Fragment:
    """Shallow merge with later keys winning; ``properties`` merge recursively."""
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key == "properties" and isinstance(value, dict) and isinstance(result.get(key), dict):
            merged = result[key]
            for prop, prop_schema in value.items():
                existing = merged.get(prop)
                if isinstance(existing, dict) and isinstance(prop_schema, dict):
                    merged[prop] = merge_fragments(existing, prop_schema)
                else:
                    merged[prop] = copy.deepcopy(prop_schema)
        else:
            result[key] = copy.deepcopy(value)
    return result


def contains_binary(fragment: Any) -> bool:
    if isinstance(fragment, dict):
        if fragment.get("format") == "binary":
            return True
        return any(contains_binary(value) for value in fragment.values())
    if isinstance(fragment, list):
        return any(contains_binary(value) for value in fragment)
    return False


def _number(text: str) -> int | float | None:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None


def _coerce_enum(values: Iterable[Any], schema_type: Any) -> list[Any]:
    result: list[Any] = []
    for value in values:
        if schema_type in _NUMERIC_TYPES and isinstance(value, str):
            number = _number(value.strip())
            result.append(value if number is None else number)
        else:
            result.append(value)
    return result


# ---------------------------------------------------------------------------
# Token transforms
# ---------------------------------------------------------------------------


def _set(**keys: Any) -> Callable[[Fragment, RuleToken], Fragment]:
    def apply(schema: Fragment, token: RuleToken) -> Fragment:
        return {**schema, **copy.deepcopy(keys)}

    return apply


def _bound(which: int) -> Callable[[Fragment, RuleToken], Fragment]:
    def apply(schema: Fragment, token: RuleToken) -> Fragment:
        args = token.arguments
        keys = _BOUND_KEYS.get(schema.get("type", ""))
        if not args or keys is None:
            return schema
        value = _number(args[0])
        if value is None:
            return schema
        return {**schema, keys[which]: value}

    return apply


def _between(schema: Fragment, token: RuleToken) -> Fragment:
    args = token.arguments
    keys = _BOUND_KEYS.get(schema.get("type", ""))
    if len(args) < 2 or keys is None:
        return schema
    low, high = _number(args[0]), _number(args[1])
    if low is None or high is None:
        return schema
    return {**schema, keys[0]: low, keys[1]: high}


def _size(schema: Fragment, token: RuleToken) -> Fragment:
    args = token.arguments
    keys = _BOUND_KEYS.get(schema.get("type", ""))
    if not args or keys is None:
        return schema
    value = _number(args[0])
    if value is None:
        return schema
    return {**schema, keys[0]: value, keys[1]: value}


def _digits(schema: Fragment, token: RuleToken) -> Fragment:
    args = token.arguments
    if not args or not args[0].isdigit():
        return schema
    return {**schema, "type": "string", "pattern": f"^\\d{{{args[0]}}}$"}


def _digits_between(schema: Fragment, token: RuleToken) -> Fragment:
    args = token.arguments
    if len(args) < 2 or not (args[0].isdigit() and args[1].isdigit()):
        return schema
    return {**schema, "type": "string", "pattern": f"^\\d{{{args[0]},{args[1]}}}$"}


def _date_format(schema: Fragment, token: RuleToken) -> Fragment:
    pattern = token.raw_argument or "Y-m-d"
    fmt = _DATE_FORMATS.get(pattern)
    if fmt is None:
        return {**schema, "type": "string", "example": pattern}
    return {**schema, "type": "string", "format": fmt}


def _in(schema: Fragment, token: RuleToken) -> Fragment:
    values = [value.strip('"') for value in token.arguments]
    if not values:
        return schema
    return {**schema, "enum": _coerce_enum(values, schema.get("type"))}


def _regex(schema: Fragment, token: RuleToken) -> Fragment:
    raw = token.raw_argument
    if not raw:
        return schema
    match = _REGEX_DELIMITED.match(raw)
    return {**schema, "pattern": match.group(2) if match else raw}


_TOKEN_TRANSFORMS: dict[str, Callable[[Fragment, RuleToken], Fragment]] = {
    # types
    "string": _set(type="string"),
    "integer": _set(type="integer"),
    "int": _set(type="integer"),
    "numeric": _set(type="number"),
    "decimal": _set(type="number"),
    "boolean": _set(type="boolean"),
    "bool": _set(type="boolean"),
    "accepted": _set(type="boolean"),
    "declined": _set(type="boolean"),
    "array": _set(type="array", items=DEFAULT_ARRAY_ITEMS),
    "list": _set(type="array", items=DEFAULT_ARRAY_ITEMS),
    "json": _set(type="object"),
    "file": _set(type="string", format="binary"),
    "image": _set(type="string", format="binary"),
    "mimes": _set(type="string", format="binary"),
    "mimetypes": _set(type="string", format="binary"),
    # formats
    "email": _set(type="string", format="email"),
    "url": _set(type="string", format="uri"),
    "active_url": _set(type="string", format="uri"),
    "uuid": _set(type="string", format="uuid"),
    "ip": _set(type="string", format="ipv4"),
    "ipv4": _set(type="string", format="ipv4"),
    "ipv6": _set(type="string", format="ipv6"),
    "date": _set(type="string", format="date"),
    "date_format": _date_format,
    "password": _set(type="string", format="password"),
    # constraints
    "min": _bound(0),
    "max": _bound(1),
    "between": _between,
    "size": _size,
    "digits": _digits,
    "digits_between": _digits_between,
    "in": _in,
    # patterns
    "regex": _regex,
    "alpha": _set(pattern="^[a-zA-Z]+$"),
    "alpha_num": _set(pattern="^[a-zA-Z0-9]+$"),
    "alpha_dash": _set(pattern="^[a-zA-Z0-9_-]+$"),
    "nullable": _set(nullable=True),
}


# ---------------------------------------------------------------------------
# Rule object transforms
# ---------------------------------------------------------------------------


def _password_object(schema: Fragment, rule: RuleObject) -> Fragment:
    min_length = rule.params.get("min", 8)
    return {**schema, "type": "string", "format": "password", "minLength": min_length}


def _enum_object(schema: Fragment, rule: RuleObject) -> Fragment:
    result = dict(schema)
    backing = rule.params.get("backing")
    if backing == "int":
        result["type"] = "integer"
    elif backing == "string":
        result["type"] = "string"
    values = rule.params.get("values")
    if values:
        result["enum"] = _coerce_enum(values, result.get("type"))
    elif rule.class_name:
        result["description"] = f"Must be a valid {class_basename(rule.class_name)} value"
    return result


def _in_object(schema: Fragment, rule: RuleObject) -> Fragment:
    values = rule.params.get("values") or []
    if not values:
        return schema
    return {**schema, "enum": _coerce_enum(values, schema.get("type"))}


def _file_object(schema: Fragment, rule: RuleObject) -> Fragment:
    return {**schema, "type": "string", "format": "binary"}


def _custom_object(schema: Fragment, rule: RuleObject) -> Fragment:
    name = class_basename(rule.class_name) if rule.class_name else "unknown"
    return {**schema, "description": f"Custom validation rule: {name}"}


def _unchanged(schema: Fragment, rule: RuleObject) -> Fragment:
    return schema


_OBJECT_TRANSFORMS: dict[RuleObjectKind, Callable[[Fragment, RuleObject], Fragment]] = {
    RuleObjectKind.PASSWORD: _password_object,
    RuleObjectKind.ENUM: _enum_object,
    RuleObjectKind.IN: _in_object,
    RuleObjectKind.NOT_IN: _unchanged,
    RuleObjectKind.UNIQUE: _unchanged,
    RuleObjectKind.EXISTS: _unchanged,
    RuleObjectKind.REQUIRED_IF: _unchanged,
    RuleObjectKind.DIMENSIONS: _file_object,
    RuleObjectKind.FILE: _file_object,
    RuleObjectKind.CUSTOM: _custom_object,
}


def normalize_rules(rules: RuleExpression | None) -> list[RuleToken | RuleObject]:
    """Flatten a rule expression into ordered tokens and rule objects."""
    items: Iterable[RuleItem]
    if rules is None:
        return []
    if isinstance(rules, str):
        items = [part for part in rules.split("|") if part.strip()]
    elif isinstance(rules, RuleObject):
        items = [rules]
    else:
        items = rules

    normalized: list[RuleToken | RuleObject] = []
    for item in items:
        if isinstance(item, str):
            if item.strip():
                normalized.append(RuleToken.parse(item))
        elif isinstance(item, (RuleToken | RuleObject)):
            normalized.append(item)
    return normalized


def rule_name(item: RuleToken | RuleObject) -> str:
    if isinstance(item, RuleToken):
        return item.name
    return item.kind.value


def is_required(items: Iterable[RuleToken | RuleObject]) -> bool:
    """The first required-family or sometimes/nullable token decides."""
    for item in items:
        name = rule_name(item)
        if name in _REQUIRED_FAMILY:
            return True
        if name in _OPTIONAL_FAMILY:
            return False
    return False


def top_level_name(field: str) -> str:
    return field.split(".", 1)[0].split("*", 1)[0]


def _as_object(node: Fragment) -> Fragment:
    if node.get("type") != "object":
        node["type"] = "object"
        node.pop("items", None)
    node.setdefault("properties", {})
    return node


def _place_leaf(existing: Fragment | None, schema: Fragment) -> Fragment:
    if existing is None:
        return copy.deepcopy(schema)
    merged = merge_fragments(existing, schema)
    if "items" in existing and schema.get("items") == DEFAULT_ARRAY_ITEMS:
        merged["items"] = copy.deepcopy(existing["items"])
    if merged.get("properties") and merged.get("type") not in ("object", "array"):
        merged["type"] = "object"
    if merged.get("type") == "array" and merged.get("properties"):
        _as_object(merged)
    return merged


def _place(properties: dict[str, Fragment], segments: list[str], schema: Fragment) -> None:
    head, rest = segments[0], segments[1:]
    if not rest:
        properties[head] = _place_leaf(properties.get(head), schema)
        return

    if rest[0] == "*":
        _place_items(properties.setdefault(head, {"type": "array"}), rest[1:], schema)
        return

    node = _as_object(properties.setdefault(head, {"type": "object", "properties": {}}))
    _place(node["properties"], rest, schema)


def _place_items(node: Fragment, segments: list[str], schema: Fragment) -> None:
    """Place ``schema`` below the ``items`` of an array node; a leading ``*`` nests another array."""
    node["type"] = "array"
    node.pop("properties", None)
    items = node.get("items")
    if not segments:
        base = items if isinstance(items, dict) and items != DEFAULT_ARRAY_ITEMS else None
        node["items"] = _place_leaf(base, schema)
        return

    if segments[0] == "*":
        if not isinstance(items, dict) or items.get("type") != "array":
            items = {"type": "array"}
            node["items"] = items
        _place_items(items, segments[1:], schema)
        return

    if not isinstance(items, dict) or items.get("type") != "object":
        items = {"type": "object", "properties": {}}
        node["items"] = items
    items.setdefault("properties", {})
    _place(items["properties"], segments, schema)


class RuleSchemaMapper:
    """Maps validation rule expressions to schema fragments.

    Never raises: a field whose rules cannot be interpreted falls back to
    ``{"type": "string"}`` and leaves a message in ``diagnostics``.
    """

    def __init__(self) -> None:
        self.diagnostics: list[str] = []

    def map_field(self, rules: RuleExpression | None) -> Fragment:
        schema: Fragment = {"type": "string"}
        for item in normalize_rules(rules):
            try:
                if isinstance(item, RuleToken):
                    transform = _TOKEN_TRANSFORMS.get(item.name)
                    if transform is not None:
                        schema = transform(schema, item)
                else:
                    schema = _OBJECT_TRANSFORMS.get(item.kind, _unchanged)(schema, item)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Ignoring rule %r: %s", item, exc)
                self.diagnostics.append(f"rule {rule_name(item)!r} could not be applied: {exc}")
        return schema

    def map(self, rules: Mapping[str, RuleExpression]) -> Fragment:
        """Build an object schema from a ``field -> rules`` mapping."""
        properties: dict[str, Fragment] = {}
        required: list[str] = []

        for field, field_rules in rules.items():
            try:
                items = normalize_rules(field_rules)
                schema = self.map_field(items)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Falling back to string for field %s: %s", field, exc)
                self.diagnostics.append(f"field {field!r} could not be mapped: {exc}")
                items, schema = [], {"type": "string"}

            segments = [segment for segment in str(field).split(".") if segment != ""]
            if not segments:
                continue
            _place(properties, segments, schema)

            name = top_level_name(str(field))
            if name and is_required(items) and name not in required:
                required.append(name)

        result: Fragment = {"type": "object", "properties": properties}
        if required:
            result["required"] = required
        return result
