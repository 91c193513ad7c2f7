"""
Auth service client for Gateway.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from shared.logging import get_logger


class RevocationStatus(str, Enum):
    """Answer of the revocation authority for one token."""

    ACTIVE = "active"
    REVOKED = "revoked"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class RevocationCheck:
    status: RevocationStatus
    reason: Optional[str] = None


class AuthClient:
    """Client for the authentication microservice's token verification endpoint."""

    VERIFY_PATH = "/api/auth/verify"

    def __init__(
        self,
        auth_service_url: str,
        *,
        timeout: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.auth_service_url = auth_service_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger("gateway.auth_client")
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    async def close(self) -> None:
        """Close the underlying HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    async def verify_token(self, token: str) -> RevocationCheck:
        """Ask the auth service whether a locally valid token is still active.

        Never raises for transport problems: an unreachable auth service is
        reported as ``UNAVAILABLE`` and the caller applies its policy.
        """
        url = f"{self.auth_service_url}{self.VERIFY_PATH}"
        try:
            response = await self._client.get(
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            self.logger.warning("Auth service verification timed out", error=str(e))
            return RevocationCheck(RevocationStatus.UNAVAILABLE, reason="timeout")
        except httpx.HTTPError as e:
            self.logger.warning("Auth service HTTP error", error=str(e))
            return RevocationCheck(RevocationStatus.UNAVAILABLE, reason=str(e) or type(e).__name__)

        if response.is_success:
            return RevocationCheck(RevocationStatus.ACTIVE)

        if response.status_code in (401, 403):
            self.logger.info("Token rejected by auth service", status_code=response.status_code)
            return RevocationCheck(
                RevocationStatus.REVOKED,
                reason=f"status {response.status_code}",
            )

        self.logger.warning(
            "Unexpected auth service response",
            status_code=response.status_code,
        )
        return RevocationCheck(
            RevocationStatus.UNAVAILABLE,
            reason=f"status {response.status_code}",
        )
