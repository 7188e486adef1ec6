import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_parser

logger = logging.getLogger(__name__)

_USE_ALIAS = re.compile(r"^\s*\\?([\w\\]+)(?:\s+as\s+(\w+))?\s*$", re.IGNORECASE)


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal over every descendant, including ``node``."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find_all(node: Node, *types: str) -> list[Node]:
    return [child for child in walk(node) if child.type in types]


@dataclass
class PhpSource:
    """One parsed PHP file plus the name-resolution context it declares."""

    path: Path
    root: Node
    namespace: str = ""
    imports: dict[str, str] = field(default_factory=dict)

    def resolve(self, name: str) -> str:
        """Fully qualify a class name as written in this file."""
        name = name.strip()
        if name.startswith("\\"):
            return name.lstrip("\\")
        head, sep, rest = name.partition("\\")
        if head in self.imports:
            return self.imports[head] + (sep + rest if sep else "")
        if name in ("self", "static", "parent"):
            return name
        return f"{self.namespace}\\{name}" if self.namespace else name

    def find_class(self, short_name: str | None = None) -> Node | None:
        for node in find_all(self.root, "class_declaration"):
            if short_name is None or node_text(node.child_by_field_name("name")) == short_name:
                return node
        return None

    def find_enum(self, short_name: str) -> Node | None:
        for node in find_all(self.root, "enum_declaration"):
            if node_text(node.child_by_field_name("name")) == short_name:
                return node
        return None


def _parse_imports(root: Node) -> dict[str, str]:
    imports: dict[str, str] = {}
    for declaration in find_all(root, "namespace_use_declaration"):
        prefix = ""
        group = next((c for c in declaration.children if c.type == "namespace_use_group"), None)
        if group is not None:
            prefix = node_text(next((c for c in declaration.children if c.type in ("namespace_name", "name")), None))
        for clause in find_all(declaration, "namespace_use_clause", "namespace_use_group_clause"):
            match = _USE_ALIAS.match(node_text(clause))
            if match is None:
                continue
            fqn = f"{prefix}\\{match.group(1)}" if prefix else match.group(1)
            alias = match.group(2) or fqn.rsplit("\\", 1)[-1]
            imports[alias] = fqn.lstrip("\\")
    return imports


class SourceIndex:
    """Locates and parses PHP classes under a PSR-4 namespace map.

    Parsed files are cached for the lifetime of the index; a missing or
    unparsable file is remembered as ``None`` and never retried.
    """

    def __init__(self, root: str | Path, namespaces: Mapping[str, str]) -> None:
        self.root = Path(root)
        # Longest prefix first so nested namespaces win.
        self.namespaces = sorted(
            ((prefix.strip("\\") + "\\", directory) for prefix, directory in namespaces.items()),
            key=lambda item: len(item[0]),
            reverse=True,
        )
        self._parser: Parser | None = None
        self._cache: dict[Path, PhpSource | None] = {}

    @property
    def parser(self) -> Parser:
        if self._parser is None:
            self._parser = get_parser("php")
        return self._parser

    def locate(self, fqn: str) -> Path | None:
        fqn = fqn.lstrip("\\")
        for prefix, directory in self.namespaces:
            if fqn.startswith(prefix):
                relative = fqn[len(prefix) :].replace("\\", "/") + ".php"
                candidate = self.root / directory / relative
                if candidate.is_file():
                    return candidate
        return None

    def parse_bytes(self, source: bytes, path: Path) -> PhpSource:
        tree = self.parser.parse(source)
        root = tree.root_node
        namespace = ""
        definition = next(iter(find_all(root, "namespace_definition")), None)
        if definition is not None:
            namespace = node_text(definition.child_by_field_name("name")).strip("\\")
        return PhpSource(path=path, root=root, namespace=namespace, imports=_parse_imports(root))

    def load(self, path: Path) -> PhpSource | None:
        if path in self._cache:
            return self._cache[path]
        try:
            source = self.parse_bytes(path.read_bytes(), path)
        except OSError as exc:
            logger.debug("Could not read %s: %s", path, exc)
            source = None
        self._cache[path] = source
        return source

    def load_class(self, fqn: str) -> tuple[PhpSource, Node] | None:
        path = self.locate(fqn)
        if path is None:
            return None
        source = self.load(path)
        if source is None:
            return None
        node = source.find_class(fqn.rsplit("\\", 1)[-1])
        if node is None:
            return None
        return source, node

    def load_enum(self, fqn: str) -> tuple[PhpSource, Node] | None:
        path = self.locate(fqn)
        if path is None:
            return None
        source = self.load(path)
        if source is None:
            return None
        node = source.find_enum(fqn.rsplit("\\", 1)[-1])
        if node is None:
            return None
        return source, node


def class_method(class_node: Node, name: str) -> Node | None:
    body = class_node.child_by_field_name("body")
    if body is None:
        return None
    for child in body.named_children:
        if child.type == "method_declaration" and node_text(child.child_by_field_name("name")) == name:
            return child
    return None


def parent_class(class_node: Node) -> str | None:
    for child in class_node.children:
        if child.type == "base_clause":
            names = [c for c in child.named_children if c.type in ("name", "qualified_name")]
            if names:
                return node_text(names[0])
    return None


def docblock(node: Node) -> str | None:
    """The ``/** ... */`` comment directly above a declaration, if any."""
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "attribute_list":
        sibling = sibling.prev_named_sibling
    if sibling is not None and sibling.type == "comment":
        text = node_text(sibling)
        if text.startswith("/**"):
            return text
    return None
