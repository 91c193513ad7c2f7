"""
Proxy package for the gateway: downstream forwarding and health fan-out.
"""

from .forwarder import (
    FailureKind,
    ProxyFailure,
    ProxyForwarder,
    ProxyRequest,
    ProxyResult,
)
from .health import HealthAggregator, HealthReport

__all__ = [
    "FailureKind",
    "HealthAggregator",
    "HealthReport",
    "ProxyFailure",
    "ProxyForwarder",
    "ProxyRequest",
    "ProxyResult",
]
