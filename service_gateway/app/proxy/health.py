"""
Aggregated health of the downstream microservices.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from shared.config import ServiceConfig
from shared.logging import get_logger

from .forwarder import ProxyForwarder, ProxyRequest, ProxyResult

UP = "UP"
DOWN = "DOWN"
DEGRADED = "DEGRADED"


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ServiceHealth:
    name: str
    status: str
    url: str
    response_time_ms: float
    status_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status,
            "url": self.url,
            "response_time_ms": self.response_time_ms,
        }
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class HealthReport:
    status: str
    services: Dict[str, ServiceHealth] = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return 200 if self.status == UP else 503

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "service": "API Gateway",
            "version": "1.0.0",
            "timestamp": format_timestamp(datetime.now(timezone.utc)),
            "services": {name: health.to_dict() for name, health in self.services.items()},
        }


class HealthAggregator:
    """Probes every configured service concurrently and independently."""

    def __init__(
        self,
        forwarder: ProxyForwarder,
        services: Mapping[str, ServiceConfig],
        probe_timeout: float = 5.0,
    ):
        self.forwarder = forwarder
        self.services = services
        self.probe_timeout = probe_timeout
        self.logger = get_logger("gateway.health")

    async def probe(self, service: ServiceConfig) -> ServiceHealth:
        request = ProxyRequest(
            method="GET",
            path=service.health_path,
            headers=(("accept", "application/json"),),
        )
        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(
                self.forwarder.forward(request, service, timeout=self.probe_timeout),
                timeout=self.probe_timeout,
            )
        except asyncio.TimeoutError:
            return self._down(service, start, error="timeout")
        except Exception as exc:
            self.logger.error("Health probe failed", service=service.name, error=str(exc))
            return self._down(service, start, error=type(exc).__name__)

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        if isinstance(outcome, ProxyResult):
            return ServiceHealth(
                name=service.name,
                status=UP if outcome.is_success else DOWN,
                url=service.base_url,
                response_time_ms=elapsed_ms,
                status_code=outcome.status_code,
            )
        return ServiceHealth(
            name=service.name,
            status=DOWN,
            url=service.base_url,
            response_time_ms=elapsed_ms,
            error=outcome.kind.value,
        )

    async def check(self) -> HealthReport:
        services = list(self.services.values())
        results = await asyncio.gather(*(self.probe(service) for service in services))
        report = HealthReport(
            status=UP if all(result.status == UP for result in results) else DEGRADED,
            services={result.name: result for result in results},
        )
        if report.status != UP:
            self.logger.warning(
                "Downstream services degraded",
                down=[name for name, health in report.services.items() if health.status != UP],
            )
        return report

    def _down(self, service: ServiceConfig, start: float, error: str) -> ServiceHealth:
        return ServiceHealth(
            name=service.name,
            status=DOWN,
            url=service.base_url,
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
            error=error,
        )
