"""
Static access requirements for every proxied route group.

Each group holds an ordered list of rules matched by HTTP method and path
pattern; the first matching rule decides the access level. Pattern
segments written as ``{name}`` match exactly one path segment and a final
``*`` matches any remaining segments, including none.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Sequence, Tuple


class AccessLevel(str, Enum):
    PUBLIC = "public"
    OPTIONAL = "optional"
    AUTHENTICATED = "authenticated"
    STAFF = "staff"
    PATIENT = "patient"


def _segments(path: str) -> Tuple[str, ...]:
    return tuple(segment for segment in path.split("/") if segment)


@dataclass(frozen=True)
class AccessRule:
    pattern: str
    level: AccessLevel
    methods: Optional[FrozenSet[str]] = None
    _parts: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_parts", _segments(self.pattern))

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False

        parts = self._parts
        segments = _segments(path)
        if parts and parts[-1] == "*":
            head = parts[:-1]
            if len(segments) < len(head):
                return False
            segments = segments[:len(head)]
            parts = head
        elif len(parts) != len(segments):
            return False

        for expected, actual in zip(parts, segments):
            if expected.startswith("{") and expected.endswith("}"):
                continue
            if expected != actual:
                return False
        return True


def rule(methods: Optional[str], pattern: str, level: AccessLevel) -> AccessRule:
    allowed = frozenset(m.strip().upper() for m in methods.split(",")) if methods else None
    return AccessRule(pattern=pattern, level=level, methods=allowed)


@dataclass(frozen=True)
class RoutePolicy:
    rules: Sequence[AccessRule] = ()
    default: AccessLevel = AccessLevel.AUTHENTICATED

    def access_for(self, method: str, path: str) -> AccessLevel:
        for access_rule in self.rules:
            if access_rule.matches(method, path):
                return access_rule.level
        return self.default


_PUBLIC = AccessLevel.PUBLIC
_AUTH = AccessLevel.AUTHENTICATED
_STAFF = AccessLevel.STAFF
_PATIENT = AccessLevel.PATIENT

_CONSULTATION_STAFF_RULES = (
    rule("POST", "/", _STAFF),
    rule("GET", "/dashboard", _STAFF),
    rule("PUT", "/{consulta_id}/cancelar", _STAFF),
    rule("PUT", "/{consulta_id}/realizar", _STAFF),
    rule("PUT", "/agendamento/confirmar", _STAFF),
)

_CONSULTATION_PATIENT_RULES = (
    rule("POST", "/consulta/{consulta_id}", _PATIENT),
    rule("PUT", "/{agendamento_id}/checkin", _PATIENT),
    rule("GET", "/paciente", _PATIENT),
)

_CONSULTATION_SHARED_RULES = (
    rule("GET", "/especialidades", _PUBLIC),
    rule("GET", "/especialidades/{codigo}", _PUBLIC),
    rule("GET", "/buscar/*", _AUTH),
)

# Mounted at both /consultas and /agendamentos.
_CONSULTATION_POLICY = RoutePolicy(
    rules=_CONSULTATION_STAFF_RULES + _CONSULTATION_PATIENT_RULES + _CONSULTATION_SHARED_RULES,
    default=_AUTH,
)

DEFAULT_POLICIES: Mapping[str, RoutePolicy] = {
    "/auth": RoutePolicy(
        rules=(
            rule(None, "/login/*", _PUBLIC),
            rule(None, "/register/paciente/*", _PUBLIC),
            rule(None, "/check-email/*", _PUBLIC),
            rule(None, "/check-cpf/*", _PUBLIC),
            rule(None, "/health/*", _PUBLIC),
        ),
        default=AccessLevel.OPTIONAL,
    ),
    "/funcionarios": RoutePolicy(default=_STAFF),
    "/pacientes": RoutePolicy(
        rules=(rule(None, "/search-public/*", _PUBLIC),),
        default=_AUTH,
    ),
    "/consultas": _CONSULTATION_POLICY,
    "/agendamentos": _CONSULTATION_POLICY,
}


class AccessPolicyTable:
    """Looks up the access level a request needs."""

    def __init__(self, policies: Optional[Mapping[str, RoutePolicy]] = None):
        self.policies: Dict[str, RoutePolicy] = dict(policies if policies is not None else DEFAULT_POLICIES)
        self.fallback = RoutePolicy()

    def access_for(self, group: str, method: str, subpath: str) -> AccessLevel:
        policy = self.policies.get(group, self.fallback)
        return policy.access_for(method, subpath)
