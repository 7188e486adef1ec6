import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from openapi_synth.config import SecuritySchemeConfig
from openapi_synth.models import RateLimit, SecurityRequirement, SecuritySchemeRecord

logger = logging.getLogger(__name__)

_AUTH_MIDDLEWARE = frozenset(
    {
        "auth",
        "auth.basic",
        "auth.session",
        "verified",
        "can",
        "ability",
        "abilities",
        "scope",
        "scopes",
        "jwt.auth",
        "jwt.verify",
        "passport",
    }
)
_SCOPED_MIDDLEWARE = frozenset({"scope", "scopes", "ability", "abilities", "can"})
_RATE_LIMIT_MIDDLEWARE = frozenset({"throttle", "rate", "ratelimit"})

# Schemes the classifier may name on its own when nothing configured matches.
_INFERRED_SCHEMES: dict[str, dict[str, Any]] = {
    "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
    "basicAuth": {"type": "http", "scheme": "basic"},
}


@dataclass(frozen=True)
class Middleware:
    name: str
    full: str
    parameters: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Middleware":
        name, sep, params = text.partition(":")
        parameters = tuple(p.strip() for p in params.split(",") if p.strip()) if sep else ()
        return cls(name=name.strip(), full=text, parameters=parameters)


@dataclass
class MiddlewareAnalysis:
    security: list[SecurityRequirement] = field(default_factory=list)
    rate_limit: RateLimit | None = None


def _is_number(text: str) -> bool:
    return text.isdigit()


def _scopes(mw: Middleware) -> list[str]:
    if mw.name in _SCOPED_MIDDLEWARE:
        return list(mw.parameters)
    return []


def _infer_scheme(mw: Middleware) -> str:
    if "basic" in mw.name:
        return "basicAuth"
    return "bearerAuth"


def _rate_limit(mw: Middleware) -> RateLimit | None:
    if mw.name not in _RATE_LIMIT_MIDDLEWARE:
        return None
    params = mw.parameters
    if len(params) >= 2 and _is_number(params[0]) and _is_number(params[1]):
        return RateLimit(requests=int(params[0]), per_seconds=int(params[1]) * 60)
    if len(params) == 1 and _is_number(params[0]):
        return RateLimit(requests=int(params[0]), per_seconds=60)
    if params and not _is_number(params[0]):
        return RateLimit(limiter=params[0])
    return RateLimit()


class MiddlewareClassifier:
    """Derives security requirements and rate limits from a route's middleware."""

    def __init__(self, schemes: Mapping[str, SecuritySchemeConfig]) -> None:
        self._schemes = dict(schemes)

    def analyze(self, middleware: Iterable[str]) -> MiddlewareAnalysis:
        analysis = MiddlewareAnalysis()
        for text in middleware:
            mw = Middleware.parse(text)
            requirement = self._auth_requirement(mw)
            if requirement is not None:
                analysis.security.append(requirement)
            rate_limit = _rate_limit(mw)
            if rate_limit is not None:
                analysis.rate_limit = rate_limit
        return analysis

    def requirements(self, middleware: Iterable[str]) -> list[SecurityRequirement]:
        return self.analyze(middleware).security

    def _auth_requirement(self, mw: Middleware) -> SecurityRequirement | None:
        for scheme_name, scheme in self._schemes.items():
            if mw.full in scheme.middleware or mw.name in scheme.middleware:
                return SecurityRequirement(scheme=scheme_name, scopes=_scopes(mw))
        if mw.name in _AUTH_MIDDLEWARE or mw.name.startswith("auth"):
            return SecurityRequirement(scheme=_infer_scheme(mw), scopes=_scopes(mw))
        return None


def rate_limit_headers(rate_limit: RateLimit | None) -> dict[str, Any]:
    if rate_limit is None or not rate_limit.requests:
        return {}
    return {
        "X-RateLimit-Limit": {
            "description": "The maximum number of requests allowed",
            "schema": {"type": "integer"},
            "example": rate_limit.requests,
        },
        "X-RateLimit-Remaining": {
            "description": "The number of remaining requests",
            "schema": {"type": "integer"},
        },
    }


def build_security_schemes(
    stored: Iterable[SecuritySchemeRecord],
    configured: Mapping[str, SecuritySchemeConfig],
    used: Iterable[str] = (),
) -> dict[str, dict[str, Any]]:
    """Stored schemes first, then configured ones not already present.

    Schemes named by operations but defined nowhere are filled in from the
    classifier's built-in definitions so every requirement resolves.
    """
    schemes: dict[str, dict[str, Any]] = {}
    for record in stored:
        schemes[record.name] = record.to_openapi()
    for name, scheme in configured.items():
        if name not in schemes:
            schemes[name] = scheme.to_record(name).to_openapi()
    for name in used:
        if name not in schemes and name in _INFERRED_SCHEMES:
            logger.debug("Adding inferred security scheme %s", name)
            schemes[name] = dict(_INFERRED_SCHEMES[name])
    if not schemes:
        schemes["bearerAuth"] = dict(_INFERRED_SCHEMES["bearerAuth"])
    return schemes


def default_security(
    configured: Mapping[str, SecuritySchemeConfig],
    schemes: Mapping[str, Any],
) -> list[dict[str, list[str]]] | None:
    for name, scheme in configured.items():
        if scheme.middleware:
            return [{name: []}]
    if schemes:
        return [{next(iter(schemes)): []}]
    return None
