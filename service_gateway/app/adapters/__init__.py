"""
Adapters package for the Gateway Service.

Contains HTTP client wrappers for internal dependencies. Adapters
encapsulate base URLs, request shapes and timeouts, and report
transport problems as values rather than raising.
"""

from .auth_client import AuthClient, RevocationCheck, RevocationStatus

__all__ = [
    "AuthClient",
    "RevocationCheck",
    "RevocationStatus",
]
