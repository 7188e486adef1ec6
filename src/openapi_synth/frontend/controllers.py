import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from tree_sitter import Node

from openapi_synth.config import ResponseMacro
from openapi_synth.frontend.nodes import created_class, scoped_parts, unwrap
from openapi_synth.frontend.requests import RuleExtractor, RuleMap, inline_rule_arrays
from openapi_synth.frontend.source import PhpSource, SourceIndex, class_method, find_all, node_text, walk
from openapi_synth.models import StatusResponse

logger = logging.getLogger(__name__)

_BASE_REQUESTS = frozenset({"Request", "FormRequest"})
_RESOURCE_MARKERS = ("Resource", "Collection")


@dataclass
class ActionFindings:
    request_class: str | None = None
    inline_rules: list[RuleMap] = field(default_factory=list)
    resource_class: str | None = None
    resource_is_collection: bool = False
    status_responses: list[StatusResponse] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)


def _parameter_type(parameter: Node) -> str | None:
    type_node = parameter.child_by_field_name("type")
    if type_node is None:
        return None
    names = [node_text(n) for n in walk(type_node) if n.type in ("name", "qualified_name")]
    return names[-1] if names and type_node.type != "union_type" else None


def _looks_like_resource(name: str) -> bool:
    return any(marker in name.rsplit("\\", 1)[-1] for marker in _RESOURCE_MARKERS)


class ControllerAnalyzer:
    """Reads a controller action: its FormRequest, inline validation and returns."""

    def __init__(self, index: SourceIndex, macros: Mapping[str, ResponseMacro], rules: RuleExtractor) -> None:
        self.index = index
        self.macros = dict(macros)
        self.rules = rules

    def analyze(self, controller: str, action: str) -> ActionFindings:
        findings = ActionFindings()
        found = self.index.load_class(controller)
        if found is None:
            findings.diagnostics.append(f"controller {controller} not found")
            return findings
        source, class_node = found
        method = class_method(class_node, action)
        if method is None:
            findings.diagnostics.append(f"action {action} not found on {controller}")
            return findings

        findings.request_class = self._request_class(method, source)
        for array in inline_rule_arrays(method):
            findings.inline_rules.append(self.rules.rules_from_array(array, source))
        self._returns(method, source, findings)
        return findings

    def _request_class(self, method: Node, source: PhpSource) -> str | None:
        parameters = method.child_by_field_name("parameters")
        if parameters is None:
            return None
        for parameter in parameters.named_children:
            if parameter.type != "simple_parameter":
                continue
            type_name = _parameter_type(parameter)
            if type_name is None:
                continue
            short = type_name.rsplit("\\", 1)[-1]
            if short.endswith("Request") and short not in _BASE_REQUESTS:
                return source.resolve(type_name)
        return None

    def _returns(self, method: Node, source: PhpSource, findings: ActionFindings) -> None:
        for statement in find_all(method, "return_statement"):
            expression = unwrap(statement.named_children[0]) if statement.named_children else None
            if expression is None:
                continue
            for node in walk(expression):
                if findings.resource_class is None:
                    self._resource(node, source, findings)
                self._macro(node, findings)

    def _resource(self, node: Node, source: PhpSource, findings: ActionFindings) -> None:
        if node.type == "object_creation_expression":
            name = created_class(node)
            if _looks_like_resource(name):
                findings.resource_class = source.resolve(name)
                findings.resource_is_collection = False
        elif node.type == "scoped_call_expression":
            scope, member = scoped_parts(node)
            if member in ("make", "collection") and _looks_like_resource(scope):
                findings.resource_class = source.resolve(scope)
                findings.resource_is_collection = member == "collection"

    def _macro(self, node: Node, findings: ActionFindings) -> None:
        member: str | None = None
        if node.type == "scoped_call_expression":
            scope, name = scoped_parts(node)
            if scope.rsplit("\\", 1)[-1] == "Response":
                member = name
        elif node.type == "member_call_expression":
            target = unwrap(node.child_by_field_name("object"))
            if target is not None and target.type == "function_call_expression":
                if node_text(target.child_by_field_name("function")) == "response":
                    member = node_text(node.child_by_field_name("name"))
        if member is None or member not in self.macros:
            return
        macro = self.macros[member]
        if all(existing.status != macro.status for existing in findings.status_responses):
            findings.status_responses.append(StatusResponse(status=macro.status, description=macro.description))
