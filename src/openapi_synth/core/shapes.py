import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from openapi_synth.core.ir import (
    ArrayItem,
    ArrayLiteral,
    BoolLiteral,
    Conditional,
    FloatLiteral,
    IntLiteral,
    MethodCall,
    NullCoalesce,
    NullLiteral,
    ObjectCreation,
    PropertyAccess,
    ShapeNode,
    ShapeTree,
    StaticCall,
    StringLiteral,
    class_basename,
)

if TYPE_CHECKING:
    from openapi_synth.core.registry import SchemaRegistry

logger = logging.getLogger(__name__)

Fragment = dict[str, Any]

REF_PREFIX = "#/components/schemas/"

_INTEGER_NAMES = frozenset({"port", "count", "total", "quantity", "amount"})
_NUMBER_NAMES = frozenset({"price", "cost", "rate"})
_URI_NAMES = frozenset({"url", "website"})
_IP_NAMES = frozenset({"ip", "ip_address"})

# Methods on the resource that splice another array into the parent, mapped
# to the position of that array among the call arguments.
_MERGE_METHODS = {"mergeWhen": 1, "mergeUnless": 1, "merge": 0}
# Methods whose value argument carries the real payload.
_CONDITIONAL_VALUE_METHODS = {"when": 1, "unless": 1, "whenNotNull": 0, "whenLoaded": 1, "whenCounted": 1}


def schema_for_property_name(name: str) -> Fragment:
    if name.endswith("_id") or name == "id":
        return {"type": "string", "format": "uuid"}
    if name.endswith("_at"):
        return {"type": "string", "format": "date-time"}
    if name.endswith("_date"):
        return {"type": "string", "format": "date"}
    if name.startswith(("is_", "has_")):
        return {"type": "boolean"}
    if name == "email":
        return {"type": "string", "format": "email"}
    if name in _URI_NAMES:
        return {"type": "string", "format": "uri"}
    if name in _IP_NAMES:
        return {"type": "string", "format": "ipv4"}
    if name in _INTEGER_NAMES:
        return {"type": "integer"}
    if name in _NUMBER_NAMES:
        return {"type": "number"}
    return {"type": "string"}


def schema_for_method_name(name: str) -> Fragment:
    if name.startswith("get"):
        return {"type": "string"}
    if name.startswith(("is", "has")):
        return {"type": "boolean"}
    if name == "toArray":
        return {"type": "array", "items": {"type": "string"}}
    if name == "toIso8601String" or "Date" in name:
        return {"type": "string", "format": "date-time"}
    if name == "count":
        return {"type": "integer"}
    return {"type": "string"}


class ShapeInferencer:
    """Turns the return expression of a resource's ``toArray`` into a schema.

    References to other resources go through the registry when one is given,
    so the document builder can later resolve or placeholder them.
    """

    def __init__(self, registry: "SchemaRegistry | None" = None, ref_prefix: str = REF_PREFIX) -> None:
        self._registry = registry
        self._ref_prefix = ref_prefix
        self.references: set[str] = set()
        self.diagnostics: list[str] = []
        self._dispatch: dict[type, Callable[[Any], Fragment | None]] = {
            StringLiteral: lambda node: {"type": "string", "example": node.value},
            IntLiteral: lambda node: {"type": "integer", "example": node.value},
            FloatLiteral: lambda node: {"type": "number", "example": node.value},
            BoolLiteral: lambda node: {"type": "boolean"},
            NullLiteral: lambda node: {"type": "string", "nullable": True},
            PropertyAccess: lambda node: schema_for_property_name(node.property),
            MethodCall: self._method_call,
            Conditional: self._conditional,
            NullCoalesce: self._null_coalesce,
            ArrayLiteral: lambda node: {"type": "array", "items": {"type": "string"}},
            ObjectCreation: self._object_creation,
            StaticCall: self._static_call,
        }

    def infer(self, tree: ShapeTree) -> Fragment:
        try:
            if tree.collects:
                return self._ref(class_basename(tree.collects))
            for expression in tree.returns:
                if isinstance(expression, ArrayLiteral):
                    return self.object_from_array(expression)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Shape inference failed for %s: %s", tree.name, exc)
            self.diagnostics.append(f"shape of {tree.name or 'resource'} could not be inferred: {exc}")
        return {"type": "object"}

    def object_from_array(self, array: ArrayLiteral) -> Fragment:
        return {"type": "object", "properties": self._properties(array)}

    def value(self, node: ShapeNode | None) -> Fragment:
        """Schema for a single value expression; unknown constructs become objects."""
        if node is None:
            return {"type": "object"}
        handler = self._dispatch.get(type(node))
        if handler is None:
            return {"type": "object"}
        try:
            result = handler(node)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Could not infer %s: %s", type(node).__name__, exc)
            self.diagnostics.append(f"{type(node).__name__} could not be inferred: {exc}")
            return {"type": "object"}
        return result if result is not None else {"type": "object"}

    def _properties(self, array: ArrayLiteral) -> dict[str, Fragment]:
        properties: dict[str, Fragment] = {}
        for item in array.items:
            if item.key is None:
                properties.update(self._merged_properties(item))
                continue
            if not isinstance(item.key, StringLiteral):
                continue
            properties[item.key.value] = self.value(item.value)
        return properties

    def _merged_properties(self, item: ArrayItem) -> dict[str, Fragment]:
        value = item.value
        if item.spread and isinstance(value, ArrayLiteral):
            return self._properties(value)
        if isinstance(value, MethodCall) and value.method in _MERGE_METHODS:
            position = _MERGE_METHODS[value.method]
            merged = value.arguments[position] if len(value.arguments) > position else None
            if isinstance(merged, ArrayLiteral):
                return self._properties(merged)
        return {}

    def _ref(self, name: str) -> Fragment:
        self.references.add(name)
        if self._registry is not None:
            return self._registry.ref(name)
        return {"$ref": f"{self._ref_prefix}{name}"}

    def _method_call(self, node: MethodCall) -> Fragment:
        position = _CONDITIONAL_VALUE_METHODS.get(node.method)
        if position is not None and len(node.arguments) > position:
            return self.value(node.arguments[position])
        return schema_for_method_name(node.method)

    def _conditional(self, node: Conditional) -> Fragment:
        branch = node.if_true if node.if_true is not None else node.if_false
        return self.value(branch)

    def _null_coalesce(self, node: NullCoalesce) -> Fragment:
        schema = dict(self.value(node.left))
        schema["nullable"] = True
        return schema

    def _object_creation(self, node: ObjectCreation) -> Fragment:
        if "resource" in class_basename(node.class_name).lower():
            return self._ref(class_basename(node.class_name))
        return {"type": "object"}

    def _static_call(self, node: StaticCall) -> Fragment:
        name = class_basename(node.class_name) or "Resource"
        if node.method == "collection":
            return {"type": "array", "items": self._ref(name)}
        if node.method == "make":
            return self._ref(name)
        return {"type": "object"}
