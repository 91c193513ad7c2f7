"""
Test helpers for the Hospital API Gateway.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

TEST_JWT_SECRET = "test-signing-secret"


def create_mock_user(
    user_id: str = "42",
    email: str = "maria@hospital.test",
    role: str = "PACIENTE",
) -> Dict[str, Any]:
    """Create a test user."""
    return {"user_id": user_id, "email": email, "role": role}


def create_mock_jwt_token(
    user_id: str = "42",
    email: str = "maria@hospital.test",
    role: Optional[str] = "PACIENTE",
    expires_in: int = 3600,
    secret: str = TEST_JWT_SECRET,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Create a signed token shaped like the ones the auth service issues.

    A negative ``expires_in`` produces an already expired token.
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "id": user_id,
        "sub": email,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    if role is not None:
        payload["tipo"] = role
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def bearer(token: str) -> Dict[str, str]:
    """Authorization header for a token."""
    return {"Authorization": f"Bearer {token}"}


def get_mock_settings(**overrides) -> Dict[str, Any]:
    """Gateway settings suitable for tests: no Redis, fast timeouts."""
    settings: Dict[str, Any] = {
        "env": "test",
        "log_level": "warning",
        "jwt_secret": TEST_JWT_SECRET,
        "rate_limit_enabled": False,
        "auth_service_url": "http://auth.test",
        "patient_service_url": "http://patients.test",
        "consultation_service_url": "http://consultations.test",
        "service_timeout": 2.0,
        "revocation_check_timeout": 1.0,
        "health_check_timeout": 1.0,
    }
    settings.update(overrides)
    return settings
