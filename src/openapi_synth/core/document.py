import logging
from collections.abc import Iterable
from typing import Any, Protocol

from openapi_synth.config import GeneratorConfig
from openapi_synth.core.operations import OperationAssembler
from openapi_synth.core.overrides import OverrideSnapshot, StoreUnavailable, empty_snapshot
from openapi_synth.core.registry import SchemaRegistry
from openapi_synth.core.security import MiddlewareClassifier, build_security_schemes, default_security
from openapi_synth.core.sync import index_live
from openapi_synth.models import AutoDetected, OverrideRecord, RouteDescriptor

logger = logging.getLogger(__name__)


class RouteAnalyzer(Protocol):
    def analyze(self, route: RouteDescriptor) -> AutoDetected: ...


def document_statistics(document: dict[str, Any]) -> dict[str, int]:
    paths = document.get("paths", {})
    components = document.get("components", {})
    return {
        "paths": len(paths),
        "operations": sum(len(operations) for operations in paths.values()),
        "schemas": len(components.get("schemas", {})),
        "security_schemes": len(components.get("securitySchemes", {})),
        "tags": len(document.get("tags", [])),
    }


class DocumentBuilder:
    """Assembles the full document from routes, analysis and stored overrides.

    A builder owns its schema registry and path map; use a fresh builder (or
    call :meth:`build` again, which resets both) for every document.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        analyzer: RouteAnalyzer | None = None,
        overrides: OverrideSnapshot | StoreUnavailable | None = None,
    ) -> None:
        self.config = config
        self.analyzer = analyzer
        if isinstance(overrides, OverrideSnapshot):
            self.snapshot = overrides
        else:
            if isinstance(overrides, StoreUnavailable):
                logger.info("Building without stored overrides: %s", overrides.reason)
            self.snapshot = empty_snapshot()
        self.classifier = MiddlewareClassifier(config.security_schemes)
        self.diagnostics: dict[str, list[str]] = {}
        self.registry = SchemaRegistry(self.snapshot.schemas)

    def _detect(self, route: RouteDescriptor) -> AutoDetected:
        detected = AutoDetected()
        if self.analyzer is not None:
            try:
                detected = self.analyzer.analyze(route)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Analysis of %s %s failed: %s", route.method, route.path, exc)
                detected = AutoDetected(diagnostics=[f"analysis failed: {exc}"])

        middleware = self.classifier.analyze(route.middleware)
        return detected.model_copy(update={"security": middleware.security, "rate_limit": middleware.rate_limit})

    def build(self, routes: Iterable[RouteDescriptor]) -> dict[str, Any]:
        self.registry = SchemaRegistry(self.snapshot.schemas)
        self.diagnostics = {}
        assembler = OperationAssembler(self.registry, self.config)

        paths: dict[str, dict[str, Any]] = {}
        tags: list[str] = []
        used_schemes: set[str] = set()

        visible: list[tuple[RouteDescriptor, OverrideRecord | None]] = []
        for route in index_live(routes).values():
            override = self.snapshot.for_route(route.method, route.path)
            if override is None or not override.is_hidden:
                visible.append((route, override))
        assembler.reserve(record.operation_id for _, record in visible if record and record.operation_id)

        for route, override in visible:
            detected = self._detect(route)
            if detected.diagnostics:
                self.diagnostics[f"{route.method.upper()} {route.path}"] = list(detected.diagnostics)

            operation = assembler.assemble(route, detected, override)
            rendered = operation.to_openapi()
            self.registry.note_references(rendered)
            paths.setdefault(operation.path, {})[operation.method] = rendered

            for tag in operation.tags:
                if tag not in tags:
                    tags.append(tag)
            for requirement in operation.security or []:
                used_schemes.update(requirement)

        schemas = self.registry.build()
        security_schemes = build_security_schemes(
            self.snapshot.security_schemes, self.config.security_schemes, sorted(used_schemes)
        )

        components: dict[str, Any] = {}
        if schemas:
            components["schemas"] = schemas
        components["securitySchemes"] = security_schemes

        document: dict[str, Any] = {
            "openapi": self.config.openapi_version,
            "info": self.config.info.to_openapi(),
            "servers": [server.model_dump(exclude_none=True) for server in self.config.servers],
            "paths": paths,
            "components": components,
        }
        security = default_security(self.config.security_schemes, security_schemes)
        if security is not None:
            document["security"] = security
        if tags:
            document["tags"] = [{"name": tag, "description": f"Operations related to {tag}"} for tag in tags]
        return document
