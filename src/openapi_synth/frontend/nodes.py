"""Conversion of tree-sitter PHP expression nodes into shape IR nodes."""

import ast
from collections.abc import Callable

from tree_sitter import Node

from openapi_synth.core.ir import (
    ArrayItem,
    ArrayLiteral,
    BoolLiteral,
    ClassConstant,
    Conditional,
    FloatLiteral,
    FunctionCall,
    IntLiteral,
    MethodCall,
    NullCoalesce,
    NullLiteral,
    ObjectCreation,
    PropertyAccess,
    ShapeNode,
    StaticCall,
    StringLiteral,
    Unknown,
    Variable,
)
from openapi_synth.frontend.source import PhpSource, node_text

_STRING_TYPES = frozenset({"string", "encapsed_string"})
_NAME_TYPES = frozenset({"name", "qualified_name", "relative_scope"})


def unwrap(node: Node | None) -> Node | None:
    while node is not None and node.type == "parenthesized_expression" and node.named_children:
        node = node.named_children[0]
    return node


def string_value(node: Node) -> str:
    text = node_text(node)
    if len(text) >= 2 and text[0] in "'\"" and text[-1] == text[0]:
        body = text[1:-1]
        if text[0] == "'":
            return body.replace("\\'", "'").replace("\\\\", "\\")
        return body.replace('\\"', '"').replace("\\\\", "\\")
    return text


def arguments(node: Node) -> list[Node]:
    """Value expressions of a call's arguments, in order."""
    args = node.child_by_field_name("arguments")
    if args is None:
        args = next((child for child in node.children if child.type == "arguments"), None)
    if args is None:
        return []
    values: list[Node] = []
    for argument in args.named_children:
        if argument.type != "argument" or not argument.named_children:
            continue
        value = unwrap(argument.named_children[-1])
        if value is not None:
            values.append(value)
    return values


def created_class(node: Node) -> str:
    for child in node.named_children:
        if child.type in _NAME_TYPES:
            return node_text(child)
    return ""


def scoped_parts(node: Node) -> tuple[str, str]:
    """``(scope, member)`` of a scoped call or class constant access."""
    scope = node.child_by_field_name("scope")
    name = node.child_by_field_name("name")
    if scope is None or name is None:
        named = node.named_children
        scope = named[0] if named else None
        name = named[1] if len(named) > 1 else None
    return node_text(scope), node_text(name)


def array_items(node: Node) -> list[tuple[Node | None, Node | None, bool]]:
    """``(key, value, spread)`` for each element of an array literal."""
    items: list[tuple[Node | None, Node | None, bool]] = []
    for element in node.named_children:
        if element.type != "array_element_initializer":
            continue
        children = element.children
        arrow = next((i for i, child in enumerate(children) if child.type == "=>"), None)
        if arrow is not None:
            key = next((c for c in children[:arrow] if c.is_named), None)
            value = next((c for c in children[arrow + 1 :] if c.is_named), None)
            items.append((unwrap(key), unwrap(value), False))
            continue
        named = element.named_children
        if not named:
            continue
        if named[0].type == "variadic_unpacking":
            inner = named[0].named_children
            items.append((None, unwrap(inner[0]) if inner else None, True))
        else:
            items.append((None, unwrap(named[0]), False))
    return items


class ShapeConverter:
    """Maps PHP expression nodes onto the closed set of shape IR nodes.

    Class names are resolved against the file they come from; every resolved
    name is remembered in ``classes`` (basename -> fully qualified name).
    """

    def __init__(self, source: PhpSource) -> None:
        self.source = source
        self.classes: dict[str, str] = {}
        self._dispatch: dict[str, Callable[[Node], ShapeNode]] = {
            "string": self._string,
            "encapsed_string": self._string,
            "integer": self._integer,
            "float": self._float,
            "boolean": lambda node: BoolLiteral(node_text(node).lower() == "true"),
            "null": lambda node: NullLiteral(),
            "variable_name": lambda node: Variable(node_text(node).lstrip("$")),
            "member_access_expression": self._member_access,
            "nullsafe_member_access_expression": self._member_access,
            "member_call_expression": self._member_call,
            "nullsafe_member_call_expression": self._member_call,
            "scoped_call_expression": self._scoped_call,
            "function_call_expression": self._function_call,
            "object_creation_expression": self._object_creation,
            "class_constant_access_expression": self._class_constant,
            "conditional_expression": self._conditional,
            "binary_expression": self._binary,
            "array_creation_expression": self._array,
        }

    def convert(self, node: Node | None) -> ShapeNode:
        node = unwrap(node)
        if node is None:
            return Unknown("missing")
        handler = self._dispatch.get(node.type)
        if handler is None:
            return Unknown(node.type)
        return handler(node)

    def _resolve(self, name: str) -> str:
        fqn = self.source.resolve(name)
        self.classes[fqn.rsplit("\\", 1)[-1]] = fqn
        return fqn

    def _string(self, node: Node) -> ShapeNode:
        return StringLiteral(string_value(node))

    def _integer(self, node: Node) -> ShapeNode:
        try:
            return IntLiteral(int(node_text(node).replace("_", ""), 0))
        except ValueError:
            return Unknown("integer")

    def _float(self, node: Node) -> ShapeNode:
        try:
            return FloatLiteral(float(node_text(node).replace("_", "")))
        except ValueError:
            return Unknown("float")

    def _member_access(self, node: Node) -> ShapeNode:
        return PropertyAccess(
            target=self.convert(node.child_by_field_name("object")),
            property=node_text(node.child_by_field_name("name")),
        )

    def _member_call(self, node: Node) -> ShapeNode:
        return MethodCall(
            target=self.convert(node.child_by_field_name("object")),
            method=node_text(node.child_by_field_name("name")),
            arguments=tuple(self.convert(arg) for arg in arguments(node)),
        )

    def _scoped_call(self, node: Node) -> ShapeNode:
        scope, method = scoped_parts(node)
        return StaticCall(
            class_name=self._resolve(scope),
            method=method,
            arguments=tuple(self.convert(arg) for arg in arguments(node)),
        )

    def _function_call(self, node: Node) -> ShapeNode:
        return FunctionCall(
            name=node_text(node.child_by_field_name("function")),
            arguments=tuple(self.convert(arg) for arg in arguments(node)),
        )

    def _object_creation(self, node: Node) -> ShapeNode:
        return ObjectCreation(
            class_name=self._resolve(created_class(node)),
            arguments=tuple(self.convert(arg) for arg in arguments(node)),
        )

    def _class_constant(self, node: Node) -> ShapeNode:
        scope, constant = scoped_parts(node)
        return ClassConstant(class_name=self._resolve(scope), constant=constant)

    def _conditional(self, node: Node) -> ShapeNode:
        body = node.child_by_field_name("body")
        alternative = node.child_by_field_name("alternative")
        return Conditional(
            condition=self.convert(node.child_by_field_name("condition")),
            if_true=self.convert(body) if body is not None else None,
            if_false=self.convert(alternative) if alternative is not None else None,
        )

    def _binary(self, node: Node) -> ShapeNode:
        operator = node.child_by_field_name("operator")
        if operator is not None and operator.type == "??":
            return NullCoalesce(
                left=self.convert(node.child_by_field_name("left")),
                right=self.convert(node.child_by_field_name("right")),
            )
        return Unknown("binary_expression")

    def _array(self, node: Node) -> ShapeNode:
        return ArrayLiteral(
            items=tuple(
                ArrayItem(
                    key=self.convert(key) if key is not None else None,
                    value=self.convert(value),
                    spread=spread,
                )
                for key, value, spread in array_items(node)
            )
        )


def literal(node: Node | None) -> object:
    """Python value of a scalar literal node, or ``None``."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type in _STRING_TYPES:
        return string_value(node)
    if node.type in ("integer", "float"):
        try:
            return ast.literal_eval(node_text(node).replace("_", ""))
        except (ValueError, SyntaxError):
            return None
    if node.type == "boolean":
        return node_text(node).lower() == "true"
    return None
