"""
Unit tests for failure translation.
"""

import json

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_gateway.app.domain.error_translator import ErrorTranslator
from shared.errors import (
    InvalidTokenError,
    MethodNotAllowedError,
    RateLimitError,
    RoleRequiredError,
    ServiceError,
    ServiceNotFoundError,
    ServiceTimeoutError,
    ServiceUnavailableError,
    TokenBlacklistedError,
    TokenRequiredError,
)


class TestErrorTranslator:
    """Test cases for ErrorTranslator."""

    @pytest.fixture
    def translator(self):
        return ErrorTranslator()

    @pytest.mark.parametrize("exc,status_code,code", [
        (TokenRequiredError(), 401, "TOKEN_REQUIRED"),
        (InvalidTokenError(), 403, "INVALID_TOKEN"),
        (TokenBlacklistedError(), 403, "TOKEN_BLACKLISTED"),
        (RoleRequiredError("FUNCIONARIO", "PACIENTE"), 403, "FUNCIONARIO_REQUIRED"),
        (RoleRequiredError("PACIENTE", "FUNCIONARIO"), 403, "PACIENTE_REQUIRED"),
        (ServiceNotFoundError("/farmacia"), 404, "SERVICE_NOT_FOUND"),
        (MethodNotAllowedError("TRACE"), 405, "METHOD_NOT_ALLOWED"),
        (ServiceTimeoutError("patient"), 504, "SERVICE_TIMEOUT"),
        (ServiceUnavailableError("patient"), 503, "SERVICE_UNAVAILABLE"),
        (ServiceError("patient", "reset"), 502, "SERVICE_ERROR"),
        (RateLimitError(), 429, "RATE_LIMIT_EXCEEDED"),
        (RuntimeError("boom"), 500, "INTERNAL_SERVER_ERROR"),
    ])
    def test_taxonomy(self, translator, exc, status_code, code):
        translated = translator.translate(exc)

        assert translated.status_code == status_code
        assert translated.code == code
        assert translated.envelope.error

    def test_unknown_role_uses_generic_code(self, translator):
        translated = translator.translate(RoleRequiredError("ADMIN"))

        assert translated.status_code == 403
        assert translated.code == "ACCESS_DENIED"

    def test_service_details_are_public(self, translator):
        translated = translator.translate(ServiceTimeoutError("consultation"))

        assert translated.envelope.details == {"service": "consultation"}

    def test_internal_details_hidden_in_production(self, translator):
        translated = translator.translate(RuntimeError("database password is hunter2"))

        assert translated.envelope.details is None
        assert "hunter2" not in json.dumps(translated.envelope.to_content())

    def test_auth_details_hidden_in_production(self, translator):
        translated = translator.translate(InvalidTokenError(details={"reason": "Signature verification failed"}))

        assert translated.envelope.to_content() == {
            "error": "Invalid or expired token",
            "code": "INVALID_TOKEN",
        }

    def test_development_exposes_message(self):
        translator = ErrorTranslator(expose_internal_details=True)

        translated = translator.translate(RuntimeError("boom"))

        assert translated.envelope.details == {"message": "boom", "exception": "RuntimeError"}

    def test_response_shape(self, translator):
        response = translator.to_response(ServiceNotFoundError("/farmacia"), headers={"X-Test": "1"})

        assert response.status_code == 404
        assert response.headers["x-test"] == "1"
        assert json.loads(response.body) == {
            "error": "Service not found for this route",
            "code": "SERVICE_NOT_FOUND",
            "details": {"path": "/farmacia"},
        }

    def test_method_details_are_public(self, translator):
        translated = translator.translate(MethodNotAllowedError("TRACE"))

        assert translated.envelope.details == {"method": "TRACE"}
