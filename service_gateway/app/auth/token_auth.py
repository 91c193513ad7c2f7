"""
Bearer token authentication for the gateway.

Tokens are checked in two independent steps: a local signature/expiry
verification with the shared signing secret, then an optional call to
the authentication service, which knows about tokens revoked at logout.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from jose import JWTError, jwt

from shared.errors import (
    InvalidTokenError,
    ServiceUnavailableError,
    TokenBlacklistedError,
    TokenRequiredError,
)
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector

from ..adapters.auth_client import AuthClient, RevocationStatus
from .principal import Principal

# Signed tokens issued by the auth service are a few hundred bytes.
MAX_TOKEN_LENGTH = 8192


class TokenAuthenticator:
    """Validates bearer tokens and produces the request Principal."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        auth_client: Optional[AuthClient] = None,
        allow_on_revocation_check_unavailable: bool = True,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.auth_client = auth_client
        self.allow_on_revocation_check_unavailable = allow_on_revocation_check_unavailable
        self.metrics = metrics
        self.logger = get_logger("gateway.auth")

    @staticmethod
    def extract_token(authorization: Optional[str]) -> Optional[str]:
        """Return the bearer token from an Authorization header value."""
        if not authorization:
            return None
        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer":
            return None
        token = token.strip()
        return token or None

    def verify_locally(self, token: str) -> Principal:
        """Check signature, structure and expiry without any network call."""
        if len(token) > MAX_TOKEN_LENGTH:
            raise InvalidTokenError(details={"reason": "token too large"})

        try:
            claims: Dict[str, Any] = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_aud": False, "require_exp": True},
            )
        except JWTError as exc:
            raise InvalidTokenError(details={"reason": str(exc)}) from exc

        principal = Principal.from_claims(claims)
        if principal is None:
            raise InvalidTokenError(details={"reason": "token missing identity or role claims"})
        return principal

    async def check_revocation(self, token: str) -> None:
        """Consult the revocation authority, applying the unavailability policy."""
        if self.auth_client is None:
            return

        result = await self.auth_client.verify_token(token)
        if result.status is RevocationStatus.ACTIVE:
            return

        if result.status is RevocationStatus.REVOKED:
            raise TokenBlacklistedError(details={"reason": result.reason})

        if self.allow_on_revocation_check_unavailable:
            self.logger.warning(
                "Revocation check unavailable, using local verification only",
                reason=result.reason,
            )
            self._record("revocation_unavailable_allowed")
            return

        raise ServiceUnavailableError("auth", "Token revocation check unavailable")

    async def authenticate(self, authorization: Optional[str]) -> Principal:
        """Produce a Principal or raise a typed authentication failure."""
        token = self.extract_token(authorization)
        if token is None:
            self._record("token_required")
            raise TokenRequiredError()

        try:
            principal = self.verify_locally(token)
            await self.check_revocation(token)
        except InvalidTokenError:
            self._record("invalid_token")
            raise
        except TokenBlacklistedError:
            self._record("token_blacklisted")
            raise

        self._record("authenticated")
        return principal

    async def authenticate_optional(self, authorization: Optional[str]) -> Optional[Principal]:
        """Like authenticate, but a missing or rejected token yields no Principal."""
        if self.extract_token(authorization) is None:
            return None
        try:
            return await self.authenticate(authorization)
        except (InvalidTokenError, TokenBlacklistedError, ServiceUnavailableError) as exc:
            self.logger.info("Optional authentication ignored token", reason=exc.kind.value)
            return None

    @staticmethod
    def attach(request: Request, principal: Optional[Principal]) -> None:
        """Expose the principal to later stages and to the log context."""
        request.state.principal = principal
        if principal is not None:
            set_user_context(**principal.as_log_context())

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("auth_decisions_total", outcome=outcome)
