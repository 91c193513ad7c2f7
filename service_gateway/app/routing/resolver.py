"""
Path based resolution of the downstream service that owns a request.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from shared.config import (
    AUTH_SERVICE,
    CONSULTATION_SERVICE,
    PATIENT_SERVICE,
    ServiceConfig,
    normalize_prefix,
)


@dataclass(frozen=True)
class RouteRule:
    """Route group prefix owned by one service."""

    prefix: str
    service: str

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")


@dataclass(frozen=True)
class RouteMatch:
    rule: RouteRule
    service: ServiceConfig
    # Path inside the route group, always starting with "/".
    subpath: str


# Evaluated in order; aliases are explicit rules, never inferred.
DEFAULT_RULES: Sequence[RouteRule] = (
    RouteRule("/auth", AUTH_SERVICE),
    RouteRule("/funcionarios", AUTH_SERVICE),
    RouteRule("/pacientes", PATIENT_SERVICE),
    RouteRule("/consultas", CONSULTATION_SERVICE),
    RouteRule("/agendamentos", CONSULTATION_SERVICE),
)


class ServiceResolver:
    """First-match-wins resolver over an ordered prefix table."""

    def __init__(
        self,
        services: Mapping[str, ServiceConfig],
        rules: Sequence[RouteRule] = DEFAULT_RULES,
        api_prefix: str = "/api",
    ):
        unknown = [rule.service for rule in rules if rule.service not in services]
        if unknown:
            raise ValueError(f"Routing rules reference unknown services: {sorted(set(unknown))}")
        self.services = services
        self.rules = tuple(rules)
        self.api_prefix = normalize_prefix(api_prefix)

    def strip_api_prefix(self, path: str) -> str:
        """Return the path relative to the gateway's API namespace."""
        if self.api_prefix:
            if path == self.api_prefix:
                return "/"
            if path.startswith(self.api_prefix + "/"):
                return path[len(self.api_prefix):]
        return path or "/"

    def in_namespace(self, path: str) -> bool:
        if not self.api_prefix:
            return True
        return path == self.api_prefix or path.startswith(self.api_prefix + "/")

    def match(self, path: str) -> Optional[RouteMatch]:
        if not self.in_namespace(path):
            return None
        relative = self.strip_api_prefix(path)
        for rule in self.rules:
            if rule.matches(relative):
                return RouteMatch(
                    rule=rule,
                    service=self.services[rule.service],
                    subpath=relative[len(rule.prefix):] or "/",
                )
        return None

    def resolve(self, path: str) -> Optional[ServiceConfig]:
        """Return the service owning ``path`` or None when no rule matches."""
        route = self.match(path)
        return route.service if route else None
