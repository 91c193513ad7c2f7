"""
Authenticated identity carried through a single gateway request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Role(str, Enum):
    """User profiles issued by the authentication service (``tipo`` claim)."""

    PATIENT = "PACIENTE"
    STAFF = "FUNCIONARIO"

    @classmethod
    def from_claim(cls, value: Any) -> Optional["Role"]:
        if isinstance(value, str):
            for role in cls:
                if role.value == value.strip().upper():
                    return role
        return None


@dataclass(frozen=True)
class Principal:
    """Identity derived from a verified token. Lives for one request."""

    subject_id: str
    email: Optional[str]
    role: Role
    expires_at: datetime

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> Optional["Principal"]:
        """Build a principal from verified claims, or None when they are incomplete."""
        role = Role.from_claim(claims.get("tipo"))
        if role is None:
            return None

        subject = claims.get("id", claims.get("sub"))
        if subject is None or subject == "":
            return None

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return None

        email = claims.get("email")
        return cls(
            subject_id=str(subject),
            email=email if isinstance(email, str) else None,
            role=role,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    def as_log_context(self) -> Dict[str, str]:
        return {"user_id": self.subject_id, "role": self.role.value}
