"""
Unit tests for role checks.
"""

import pytest
from datetime import datetime, timezone

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_gateway.app.auth.principal import Principal, Role
from service_gateway.app.auth.roles import require_principal, require_role
from shared.errors import RoleRequiredError, TokenRequiredError


def _principal(role: Role) -> Principal:
    return Principal(
        subject_id="1",
        email="x@hospital.test",
        role=role,
        expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


class TestRequireRole:
    """Test cases for require_role."""

    def test_no_principal(self):
        with pytest.raises(TokenRequiredError):
            require_role(None, Role.STAFF)

    def test_wrong_role(self):
        with pytest.raises(RoleRequiredError) as exc_info:
            require_role(_principal(Role.PATIENT), Role.STAFF)

        assert exc_info.value.expected_role == "FUNCIONARIO"
        assert exc_info.value.actual_role == "PACIENTE"

    def test_matching_role_passes_through_unchanged(self):
        principal = _principal(Role.PATIENT)

        assert require_role(principal, Role.PATIENT) is principal


class TestRequirePrincipal:
    """Test cases for require_principal."""

    def test_no_principal(self):
        with pytest.raises(TokenRequiredError):
            require_principal(None)

    @pytest.mark.parametrize("role", list(Role))
    def test_any_role(self, role):
        principal = _principal(role)

        assert require_principal(principal) is principal
