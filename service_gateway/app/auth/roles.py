"""
Role checks applied after authentication.
"""

from typing import Optional

from shared.errors import RoleRequiredError, TokenRequiredError

from .principal import Principal, Role


def require_role(principal: Optional[Principal], expected: Role) -> Principal:
    """Pass the principal through when it holds ``expected``, otherwise raise."""
    if principal is None:
        raise TokenRequiredError()
    if principal.role is not expected:
        raise RoleRequiredError(expected.value, principal.role.value)
    return principal


def require_principal(principal: Optional[Principal]) -> Principal:
    """Any authenticated role is accepted."""
    if principal is None:
        raise TokenRequiredError()
    return principal
