"""
Routing package: which service owns a path and what access it requires.
"""

from .policies import AccessLevel, AccessPolicyTable, RoutePolicy
from .resolver import DEFAULT_RULES, RouteMatch, RouteRule, ServiceResolver

__all__ = [
    "AccessLevel",
    "AccessPolicyTable",
    "DEFAULT_RULES",
    "RouteMatch",
    "RoutePolicy",
    "RouteRule",
    "ServiceResolver",
]
