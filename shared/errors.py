"""
Shared error handling for the Hospital API Gateway.

Exceptions here only name *what* went wrong. The HTTP status, the stable
``code`` and the client-facing message are chosen in one place, the
gateway's ErrorTranslator.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Failure taxonomy shared by every gateway stage."""

    TOKEN_REQUIRED = "token_required"
    INVALID_TOKEN = "invalid_token"
    TOKEN_BLACKLISTED = "token_blacklisted"
    ROLE_REQUIRED = "role_required"
    SERVICE_NOT_FOUND = "service_not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    SERVICE_TIMEOUT = "service_timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SERVICE_ERROR = "service_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INTERNAL_ERROR = "internal_error"


class ErrorEnvelope(BaseModel):
    """The only error body the gateway ever returns."""

    error: str
    code: str
    details: Optional[Any] = None

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class GatewayError(Exception):
    """Base exception for gateway failures."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.message = message or self.kind.value
        self.details = details or {}
        super().__init__(self.message)


class TokenRequiredError(GatewayError):
    """No bearer credential was supplied."""

    kind = ErrorKind.TOKEN_REQUIRED

    def __init__(self, message: str = "Bearer token required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidTokenError(GatewayError):
    """Token is malformed, expired or carries a bad signature."""

    kind = ErrorKind.INVALID_TOKEN

    def __init__(self, message: str = "Invalid or expired token", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class TokenBlacklistedError(GatewayError):
    """Token is cryptographically valid but was revoked by the auth service."""

    kind = ErrorKind.TOKEN_BLACKLISTED

    def __init__(self, message: str = "Token revoked", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class RoleRequiredError(GatewayError):
    """Authenticated principal does not hold the role a route requires."""

    kind = ErrorKind.ROLE_REQUIRED

    def __init__(self, expected_role: str, actual_role: Optional[str] = None):
        self.expected_role = expected_role
        self.actual_role = actual_role
        super().__init__(f"Role {expected_role} required")


class ServiceNotFoundError(GatewayError):
    """No routing rule matches the request path."""

    kind = ErrorKind.SERVICE_NOT_FOUND

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No service for path {path}", details={"path": path})


class MethodNotAllowedError(GatewayError):
    """No route accepts the request method."""

    kind = ErrorKind.METHOD_NOT_ALLOWED

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Method {method} not allowed", details={"method": method})


class ServiceTimeoutError(GatewayError):
    """Downstream call exceeded its configured bound."""

    kind = ErrorKind.SERVICE_TIMEOUT

    def __init__(self, service: str, message: str = "Downstream call timed out"):
        self.service = service
        super().__init__(f"{service}: {message}", details={"service": service})


class ServiceUnavailableError(GatewayError):
    """Downstream service refused the connection or could not be resolved."""

    kind = ErrorKind.SERVICE_UNAVAILABLE

    def __init__(self, service: str, message: str = "Service unavailable"):
        self.service = service
        super().__init__(f"{service}: {message}", details={"service": service})


class ServiceError(GatewayError):
    """Downstream responded but the exchange could not be completed."""

    kind = ErrorKind.SERVICE_ERROR

    def __init__(self, service: str, message: str = "Service error"):
        self.service = service
        super().__init__(f"{service}: {message}", details={"service": service})


class RateLimitError(GatewayError):
    """Client exceeded its request budget."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
