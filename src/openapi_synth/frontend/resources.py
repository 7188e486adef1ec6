import logging
import re
from dataclasses import dataclass, field
from typing import Any

from openapi_synth.core.ir import ShapeTree, class_basename
from openapi_synth.core.shapes import ShapeInferencer
from openapi_synth.frontend.nodes import ShapeConverter, unwrap
from openapi_synth.frontend.source import SourceIndex, class_method, find_all, node_text, parent_class
from openapi_synth.models import ResponseShape

logger = logging.getLogger(__name__)

_COLLECTS = re.compile(r"\$collects\s*=\s*\\?([\w\\]+)::class")
_GENERIC: dict[str, Any] = {"type": "object"}


@dataclass
class ResourceSchema:
    """Inferred item schema of a resource plus the resources it refers to."""

    name: str
    schema: dict[str, Any]
    components: dict[str, dict[str, Any]] = field(default_factory=dict)


class ResourceAnalyzer:
    """Infers JSON resource schemas from their ``toArray`` methods.

    Resources referenced from a resource are analysed too, up to
    ``max_depth`` levels, so they appear as real components rather than
    placeholders.
    """

    def __init__(self, index: SourceIndex, max_depth: int = 3) -> None:
        self.index = index
        self.max_depth = max_depth
        self.diagnostics: list[str] = []
        self._cache: dict[str, ResourceSchema] = {}

    def describe(self, fqn: str, is_collection: bool = False) -> tuple[ResponseShape, dict[str, dict[str, Any]]]:
        collected = self._collection_item(fqn)
        if collected is not None:
            fqn, is_collection = collected, True
        resource = self.analyze(fqn)
        shape = ResponseShape(name=resource.name, schema=resource.schema, is_collection=is_collection)
        return shape, dict(resource.components)

    def _collection_item(self, fqn: str) -> str | None:
        """Item class of a ``ResourceCollection`` subclass, if ``fqn`` is one."""
        found = self.index.load_class(fqn)
        if found is None:
            return None
        source, class_node = found
        parent = parent_class(class_node)
        if parent is None or class_basename(parent) != "ResourceCollection":
            return None
        match = _COLLECTS.search(node_text(class_node))
        if match is not None:
            return source.resolve(match.group(1))
        if fqn.endswith("Collection"):
            stem = fqn[: -len("Collection")]
            for candidate in (f"{stem}Resource", stem):
                if self.index.load_class(candidate) is not None:
                    return candidate
        self.diagnostics.append(f"collection {fqn} does not declare the resource it collects")
        return None

    def analyze(self, fqn: str, depth: int = 0, visiting: frozenset[str] = frozenset()) -> ResourceSchema:
        if fqn in self._cache:
            return self._cache[fqn]

        name = class_basename(fqn)
        found = self.index.load_class(fqn)
        if found is None:
            self.diagnostics.append(f"resource {fqn} not found")
            return ResourceSchema(name=name, schema=dict(_GENERIC))

        source, class_node = found
        method = class_method(class_node, "toArray")
        if method is None:
            result = ResourceSchema(name=name, schema=dict(_GENERIC))
            self._cache[fqn] = result
            return result

        converter = ShapeConverter(source)
        returns = []
        for statement in find_all(method, "return_statement"):
            expression = unwrap(statement.named_children[0]) if statement.named_children else None
            if expression is not None:
                returns.append(converter.convert(expression))
        tree = ShapeTree(returns=tuple(returns), name=name)

        inferencer = ShapeInferencer()
        schema = inferencer.infer(tree)
        self.diagnostics.extend(inferencer.diagnostics)

        components: dict[str, dict[str, Any]] = {}
        if depth < self.max_depth:
            for referenced in sorted(inferencer.references):
                nested_fqn = converter.classes.get(referenced)
                if nested_fqn is None or nested_fqn == fqn or nested_fqn in visiting:
                    continue
                nested = self.analyze(nested_fqn, depth + 1, visiting | {fqn})
                components[nested.name] = nested.schema
                for component, fragment in nested.components.items():
                    components.setdefault(component, fragment)

        result = ResourceSchema(name=name, schema=schema, components=components)
        self._cache[fqn] = result
        return result
