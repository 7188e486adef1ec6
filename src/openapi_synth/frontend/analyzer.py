import logging

from openapi_synth.config import GeneratorConfig
from openapi_synth.core.rules import RuleSchemaMapper, contains_binary
from openapi_synth.frontend.controllers import ControllerAnalyzer
from openapi_synth.frontend.requests import RuleExtractor
from openapi_synth.frontend.resources import ResourceAnalyzer
from openapi_synth.frontend.source import SourceIndex
from openapi_synth.models import AutoDetected, RouteDescriptor

logger = logging.getLogger(__name__)


class LaravelAnalyzer:
    """Per-route analysis of a Laravel code base into an ``AutoDetected`` record.

    Each detection step is isolated: a failure adds a diagnostic and the
    remaining steps still run.
    """

    def __init__(self, config: GeneratorConfig, index: SourceIndex | None = None) -> None:
        self.config = config
        self.index = index or SourceIndex(config.source.root, config.source.namespaces)
        self.rules = RuleExtractor(self.index)
        self.controllers = ControllerAnalyzer(self.index, config.response_macros, self.rules)
        self.resources = ResourceAnalyzer(self.index)

    def analyze(self, route: RouteDescriptor) -> AutoDetected:
        detected = AutoDetected()
        if not route.controller or not route.action:
            return detected

        self.rules.diagnostics.clear()
        self.resources.diagnostics.clear()
        try:
            findings = self.controllers.analyze(route.controller, route.action)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Controller analysis failed for %s@%s: %s", route.controller, route.action, exc)
            detected.diagnostics.append(f"controller analysis failed: {exc}")
            return detected
        detected.diagnostics.extend(findings.diagnostics)
        detected.status_responses = list(findings.status_responses)

        mapper = RuleSchemaMapper()
        detection = self.config.auto_detection

        if detection.form_requests and findings.request_class:
            detected.request_class = findings.request_class
            try:
                rules = self.rules.form_request_rules(findings.request_class)
                if rules is not None:
                    detected.request_schema = mapper.map(rules)
                detected.query_parameters = self.rules.query_parameters(findings.request_class)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Form request analysis failed for %s: %s", findings.request_class, exc)
                detected.diagnostics.append(f"form request {findings.request_class} could not be analysed: {exc}")

        if detection.inline_validation:
            detected.inline_schemas = [mapper.map(rules) for rules in findings.inline_rules]

        body = detected.request_schema or (detected.inline_schemas[0] if detected.inline_schemas else None)
        if body is not None and contains_binary(body):
            detected.content_type = "multipart/form-data"

        if detection.json_resources and findings.resource_class:
            try:
                shape, components = self.resources.describe(
                    findings.resource_class, findings.resource_is_collection
                )
                detected.responses = [shape]
                detected.component_schemas = components
            except Exception as exc:  # noqa: BLE001
                logger.debug("Resource analysis failed for %s: %s", findings.resource_class, exc)
                detected.diagnostics.append(f"resource {findings.resource_class} could not be analysed: {exc}")

        detected.diagnostics.extend(mapper.diagnostics)
        detected.diagnostics.extend(self.rules.diagnostics)
        detected.diagnostics.extend(self.resources.diagnostics)
        for message in detected.diagnostics:
            logger.debug("%s %s: %s", route.method, route.path, message)
        return detected
