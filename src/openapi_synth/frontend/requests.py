import logging
import re
from typing import Any

from tree_sitter import Node

from openapi_synth.core.ir import RuleItem, RuleObject, RuleObjectKind
from openapi_synth.frontend.nodes import (
    array_items,
    arguments,
    created_class,
    literal,
    scoped_parts,
    string_value,
    unwrap,
)
from openapi_synth.frontend.source import PhpSource, SourceIndex, class_method, docblock, find_all, node_text

logger = logging.getLogger(__name__)

RuleMap = dict[str, str | list[RuleItem]]

_QUERY_PARAM = re.compile(r"@queryParam\s+(\S+)(?:\s+(\w+))?(?:\s+(.*))?")
_QUERY_TYPES = {
    "int": "integer",
    "integer": "integer",
    "number": "number",
    "float": "number",
    "numeric": "number",
    "bool": "boolean",
    "boolean": "boolean",
    "array": "array",
    "object": "object",
}
_ENUM_BACKING = re.compile(r"enum\s+\w+\s*:\s*(int|string)", re.IGNORECASE)

_RULE_FACADE_METHODS = {
    "in": RuleObjectKind.IN,
    "notIn": RuleObjectKind.NOT_IN,
    "enum": RuleObjectKind.ENUM,
    "unique": RuleObjectKind.UNIQUE,
    "exists": RuleObjectKind.EXISTS,
    "requiredIf": RuleObjectKind.REQUIRED_IF,
    "dimensions": RuleObjectKind.DIMENSIONS,
    "file": RuleObjectKind.FILE,
    "imageFile": RuleObjectKind.FILE,
}
_RULE_CLASSES = {
    "Enum": RuleObjectKind.ENUM,
    "In": RuleObjectKind.IN,
    "NotIn": RuleObjectKind.NOT_IN,
    "Unique": RuleObjectKind.UNIQUE,
    "Exists": RuleObjectKind.EXISTS,
    "Password": RuleObjectKind.PASSWORD,
    "File": RuleObjectKind.FILE,
    "ImageFile": RuleObjectKind.FILE,
    "Dimensions": RuleObjectKind.DIMENSIONS,
    "RequiredIf": RuleObjectKind.REQUIRED_IF,
}


def _basename(name: str) -> str:
    return name.rsplit("\\", 1)[-1]


class RuleExtractor:
    """Reads validation rule arrays out of PHP source.

    Enum rule objects are enriched with the cases of the referenced enum when
    that enum can be located through the source index.
    """

    def __init__(self, index: SourceIndex) -> None:
        self.index = index
        self.diagnostics: list[str] = []

    def rules_from_array(self, array: Node, source: PhpSource) -> RuleMap:
        rules: RuleMap = {}
        for key, value, _spread in array_items(array):
            if key is None or value is None:
                continue
            field = literal(key)
            if not isinstance(field, str):
                continue
            expression = self._rule_expression(value, source)
            if expression is not None:
                rules[field] = expression
        return rules

    def _rule_expression(self, node: Node, source: PhpSource) -> str | list[RuleItem] | None:
        if node.type in ("string", "encapsed_string"):
            return string_value(node)
        if node.type == "array_creation_expression":
            items: list[RuleItem] = []
            for _key, value, _spread in array_items(node):
                if value is None:
                    continue
                if value.type in ("string", "encapsed_string"):
                    items.append(string_value(value))
                    continue
                rule = self.rule_object(value, source)
                if rule is not None:
                    items.append(rule)
            return items
        rule = self.rule_object(node, source)
        if rule is not None:
            return [rule]
        self.diagnostics.append(f"unsupported rule expression {node.type} in {source.path.name}")
        return None

    def rule_object(self, node: Node, source: PhpSource) -> RuleObject | None:
        node = unwrap(node)
        if node is None:
            return None
        # Fluent chains such as Password::min(8)->mixedCase() describe the root call.
        while node.type == "member_call_expression":
            inner = unwrap(node.child_by_field_name("object"))
            if inner is None:
                return None
            node = inner

        if node.type == "scoped_call_expression":
            scope, method = scoped_parts(node)
            scope_name = _basename(scope)
            args = arguments(node)
            if scope_name == "Password":
                minimum = literal(args[0]) if method == "min" and args else None
                return RuleObject(
                    RuleObjectKind.PASSWORD,
                    class_name=source.resolve(scope),
                    params={"min": minimum} if isinstance(minimum, int) else {},
                )
            if scope_name == "File":
                return RuleObject(RuleObjectKind.FILE, class_name=source.resolve(scope))
            kind = _RULE_FACADE_METHODS.get(method) if scope_name == "Rule" else None
            if kind is None:
                return RuleObject(RuleObjectKind.CUSTOM, class_name=f"{source.resolve(scope)}::{method}")
            return self._with_params(kind, args, source)

        if node.type == "object_creation_expression":
            class_name = created_class(node)
            kind = _RULE_CLASSES.get(_basename(class_name), RuleObjectKind.CUSTOM)
            if kind is RuleObjectKind.CUSTOM:
                return RuleObject(kind, class_name=source.resolve(class_name))
            if kind is RuleObjectKind.PASSWORD:
                args = arguments(node)
                minimum = literal(args[0]) if args else None
                return RuleObject(kind, params={"min": minimum} if isinstance(minimum, int) else {})
            return self._with_params(kind, arguments(node), source)

        return None

    def _with_params(self, kind: RuleObjectKind, args: list[Node], source: PhpSource) -> RuleObject:
        if kind in (RuleObjectKind.IN, RuleObjectKind.NOT_IN):
            values: list[Any] = []
            if args and args[0].type == "array_creation_expression":
                values = [literal(value) for _key, value, _spread in array_items(args[0]) if value is not None]
            else:
                values = [literal(arg) for arg in args]
            return RuleObject(kind, params={"values": [v for v in values if v is not None]})

        if kind is RuleObjectKind.ENUM and args:
            target = unwrap(args[0])
            if target is not None and target.type == "class_constant_access_expression":
                scope, _constant = scoped_parts(target)
                fqn = source.resolve(scope)
                return RuleObject(kind, class_name=fqn, params=self.enum_cases(fqn))
        return RuleObject(kind)

    def enum_cases(self, fqn: str) -> dict[str, Any]:
        found = self.index.load_enum(fqn)
        if found is None:
            self.diagnostics.append(f"enum {fqn} not found")
            return {}
        _source, node = found
        header = node_text(node).split("{", 1)[0]
        backing_match = _ENUM_BACKING.search(header)
        backing = backing_match.group(1).lower() if backing_match else None
        values: list[Any] = []
        for case in find_all(node, "enum_case"):
            value_node = case.child_by_field_name("value")
            if value_node is None:
                value_node = next((c for c in case.named_children if c.type in ("string", "integer")), None)
            value = literal(value_node) if value_node is not None else None
            values.append(value if value is not None else node_text(case.child_by_field_name("name")))
        params: dict[str, Any] = {"values": values}
        if backing:
            params["backing"] = backing
        return params

    def form_request_rules(self, fqn: str) -> RuleMap | None:
        found = self.index.load_class(fqn)
        if found is None:
            self.diagnostics.append(f"form request {fqn} not found")
            return None
        source, class_node = found
        method = class_method(class_node, "rules")
        if method is None:
            self.diagnostics.append(f"form request {fqn} has no rules() method")
            return None
        for statement in find_all(method, "return_statement"):
            expression = unwrap(statement.named_children[0]) if statement.named_children else None
            if expression is not None and expression.type == "array_creation_expression":
                return self.rules_from_array(expression, source)
        self.diagnostics.append(f"rules() of {fqn} does not return an array literal")
        return None

    def query_parameters(self, fqn: str) -> list[dict[str, Any]]:
        found = self.index.load_class(fqn)
        if found is None:
            return []
        _source, class_node = found
        comment = docblock(class_node)
        if not comment:
            return []
        parameters: list[dict[str, Any]] = []
        for match in _QUERY_PARAM.finditer(comment):
            name, type_name, description = match.group(1), match.group(2), match.group(3)
            parameter: dict[str, Any] = {
                "name": name,
                "required": False,
                "schema": {"type": _QUERY_TYPES.get((type_name or "string").lower(), "string")},
            }
            if description and description.strip().rstrip("*/").strip():
                parameter["description"] = description.strip().rstrip("*/").strip()
            parameters.append(parameter)
        return parameters


def inline_rule_arrays(method: Node) -> list[Node]:
    """Rule arrays passed to ``validate`` calls or ``Validator::make`` inside a method body."""
    arrays: list[Node] = []
    for call in find_all(method, "member_call_expression", "scoped_call_expression"):
        args = arguments(call)
        if call.type == "member_call_expression":
            if node_text(call.child_by_field_name("name")) != "validate":
                continue
            target = node_text(call.child_by_field_name("object"))
            candidate = args[1] if target == "$this" and len(args) > 1 else (args[0] if args else None)
        else:
            scope, name = scoped_parts(call)
            if _basename(scope) != "Validator" or name != "make":
                continue
            candidate = args[1] if len(args) > 1 else None
        if candidate is not None and candidate.type == "array_creation_expression":
            arrays.append(candidate)
    return arrays
