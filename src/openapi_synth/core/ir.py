"""Intermediate representation shared by the front-ends and the schema core.

Front-ends (the PHP source reader, hand-written fixtures in tests) only ever
produce these types; the rule mapper and the shape inferencer only ever
consume them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Rule expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleToken:
    """A single ``name:arg1,arg2`` validation token."""

    name: str
    raw_argument: str | None = None

    @property
    def arguments(self) -> list[str]:
        if self.raw_argument is None or self.raw_argument == "":
            return []
        return [part.strip() for part in self.raw_argument.split(",")]

    @classmethod
    def parse(cls, text: str) -> "RuleToken":
        name, sep, argument = text.strip().partition(":")
        return cls(name=name.strip().lower(), raw_argument=argument if sep else None)


class RuleObjectKind(Enum):
    PASSWORD = "password"
    ENUM = "enum"
    IN = "in"
    NOT_IN = "not_in"
    UNIQUE = "unique"
    EXISTS = "exists"
    REQUIRED_IF = "required_if"
    DIMENSIONS = "dimensions"
    FILE = "file"
    CUSTOM = "custom"


@dataclass(frozen=True)
class RuleObject:
    """An opaque rule object exposing an introspectable configuration."""

    kind: RuleObjectKind
    class_name: str = ""
    params: dict[str, Any] = field(default_factory=dict)


RuleItem = str | RuleToken | RuleObject
RuleExpression = str | list[RuleItem] | tuple[RuleItem, ...] | RuleObject


# ---------------------------------------------------------------------------
# Shape expression trees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StringLiteral:
    value: str


@dataclass(frozen=True)
class IntLiteral:
    value: int


@dataclass(frozen=True)
class FloatLiteral:
    value: float


@dataclass(frozen=True)
class BoolLiteral:
    value: bool


@dataclass(frozen=True)
class NullLiteral:
    pass


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class PropertyAccess:
    """``$this->created_at`` or ``$this->resource->owner_id``."""

    target: "ShapeNode"
    property: str


@dataclass(frozen=True)
class MethodCall:
    target: "ShapeNode"
    method: str
    arguments: tuple["ShapeNode", ...] = ()


@dataclass(frozen=True)
class StaticCall:
    """``Class::method(...)``; ``class_name`` is the name as written."""

    class_name: str
    method: str
    arguments: tuple["ShapeNode", ...] = ()


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: tuple["ShapeNode", ...] = ()


@dataclass(frozen=True)
class ObjectCreation:
    class_name: str
    arguments: tuple["ShapeNode", ...] = ()


@dataclass(frozen=True)
class ClassConstant:
    """``Foo::class`` or ``Foo::BAR``."""

    class_name: str
    constant: str


@dataclass(frozen=True)
class Conditional:
    condition: "ShapeNode"
    if_true: "ShapeNode | None"
    if_false: "ShapeNode | None"


@dataclass(frozen=True)
class NullCoalesce:
    left: "ShapeNode"
    right: "ShapeNode"


@dataclass(frozen=True)
class ArrayItem:
    value: "ShapeNode"
    key: "ShapeNode | None" = None
    spread: bool = False


@dataclass(frozen=True)
class ArrayLiteral:
    items: tuple[ArrayItem, ...] = ()

    @property
    def is_keyed(self) -> bool:
        return any(item.key is not None for item in self.items)


@dataclass(frozen=True)
class Unknown:
    """Any construct the front-end could not express; ``kind`` is diagnostic only."""

    kind: str = "unknown"


ShapeNode = (
    StringLiteral
    | IntLiteral
    | FloatLiteral
    | BoolLiteral
    | NullLiteral
    | Variable
    | PropertyAccess
    | MethodCall
    | StaticCall
    | FunctionCall
    | ObjectCreation
    | ClassConstant
    | Conditional
    | NullCoalesce
    | ArrayLiteral
    | Unknown
)


@dataclass(frozen=True)
class ShapeTree:
    """Body of a response-producing function, reduced to its return expressions."""

    returns: tuple[ShapeNode, ...] = ()
    name: str | None = None
    is_collection: bool = False
    collects: str | None = None


def literal_value(node: ShapeNode) -> Any:
    if isinstance(node, (StringLiteral | IntLiteral | FloatLiteral | BoolLiteral)):
        return node.value
    if isinstance(node, ClassConstant) and node.constant == "class":
        return node.class_name
    return None


def class_basename(name: str) -> str:
    return name.replace("/", "\\").rstrip("\\").rsplit("\\", 1)[-1]
