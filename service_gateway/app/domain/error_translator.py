"""
Translation of gateway failures into client-facing HTTP responses.

This is the only module that knows the HTTP status and stable code of
every failure kind.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from fastapi.responses import JSONResponse

from shared.errors import ErrorEnvelope, ErrorKind, GatewayError, RoleRequiredError
from shared.logging import get_logger

from ..auth.principal import Role


@dataclass(frozen=True)
class TranslatedError:
    status_code: int
    envelope: ErrorEnvelope

    @property
    def code(self) -> str:
        return self.envelope.code

    def to_response(self, headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.envelope.to_content(),
            headers=dict(headers) if headers else None,
        )


_TABLE: Dict[ErrorKind, Tuple[int, str, str]] = {
    ErrorKind.TOKEN_REQUIRED: (401, "TOKEN_REQUIRED", "Access token required"),
    ErrorKind.INVALID_TOKEN: (403, "INVALID_TOKEN", "Invalid or expired token"),
    ErrorKind.TOKEN_BLACKLISTED: (403, "TOKEN_BLACKLISTED", "Token not authorized or revoked"),
    ErrorKind.ROLE_REQUIRED: (403, "ACCESS_DENIED", "Access denied for this profile"),
    ErrorKind.SERVICE_NOT_FOUND: (404, "SERVICE_NOT_FOUND", "Service not found for this route"),
    ErrorKind.METHOD_NOT_ALLOWED: (405, "METHOD_NOT_ALLOWED", "Method not allowed"),
    ErrorKind.SERVICE_TIMEOUT: (504, "SERVICE_TIMEOUT", "Timeout communicating with the service"),
    ErrorKind.SERVICE_UNAVAILABLE: (503, "SERVICE_UNAVAILABLE", "Service temporarily unavailable"),
    ErrorKind.SERVICE_ERROR: (502, "SERVICE_ERROR", "Error communicating with the service"),
    ErrorKind.RATE_LIMIT_EXCEEDED: (
        429,
        "RATE_LIMIT_EXCEEDED",
        "Too many requests. Try again in a few minutes.",
    ),
    ErrorKind.INTERNAL_ERROR: (500, "INTERNAL_SERVER_ERROR", "Internal server error"),
}

_ROLE_CODES: Dict[str, Tuple[str, str]] = {
    Role.STAFF.value: ("FUNCIONARIO_REQUIRED", "Access restricted to staff"),
    Role.PATIENT.value: ("PACIENTE_REQUIRED", "Access restricted to patients"),
}

# Kinds whose details never carry internal information.
_PUBLIC_DETAIL_KINDS = frozenset({
    ErrorKind.SERVICE_NOT_FOUND,
    ErrorKind.METHOD_NOT_ALLOWED,
    ErrorKind.SERVICE_TIMEOUT,
    ErrorKind.SERVICE_UNAVAILABLE,
    ErrorKind.SERVICE_ERROR,
    ErrorKind.RATE_LIMIT_EXCEEDED,
})


class ErrorTranslator:
    """Pure mapping from a failure to {status, code, message}."""

    def __init__(self, expose_internal_details: bool = False):
        self.expose_internal_details = expose_internal_details
        self.logger = get_logger("gateway.errors")

    def translate(self, exc: BaseException) -> TranslatedError:
        kind = exc.kind if isinstance(exc, GatewayError) else ErrorKind.INTERNAL_ERROR
        status_code, code, message = _TABLE[kind]

        if isinstance(exc, RoleRequiredError) and exc.expected_role in _ROLE_CODES:
            code, message = _ROLE_CODES[exc.expected_role]

        details = self._details(kind, exc)
        return TranslatedError(
            status_code=status_code,
            envelope=ErrorEnvelope(error=message, code=code, details=details or None),
        )

    def to_response(self, exc: BaseException, headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
        translated = self.translate(exc)
        if translated.status_code >= 500:
            self.logger.error(
                "Request failed",
                code=translated.code,
                status_code=translated.status_code,
                error=str(exc),
                exc_info=not isinstance(exc, GatewayError),
            )
        else:
            self.logger.info("Request rejected", code=translated.code, status_code=translated.status_code)
        return translated.to_response(headers)

    def _details(self, kind: ErrorKind, exc: BaseException) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        if isinstance(exc, GatewayError) and (kind in _PUBLIC_DETAIL_KINDS or self.expose_internal_details):
            details.update(exc.details)
        if self.expose_internal_details:
            details["message"] = str(exc) or type(exc).__name__
            if not isinstance(exc, GatewayError):
                details["exception"] = type(exc).__name__
        return details
