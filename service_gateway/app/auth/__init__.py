"""
Authentication helpers for the gateway service.
"""

from .principal import Principal, Role
from .roles import require_principal, require_role
from .token_auth import TokenAuthenticator

__all__ = [
    "Principal",
    "Role",
    "TokenAuthenticator",
    "require_principal",
    "require_role",
]
