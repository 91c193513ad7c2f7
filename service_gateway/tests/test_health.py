"""
Unit tests for aggregated downstream health.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_gateway.app.proxy.forwarder import ProxyForwarder, ProxyResult
from service_gateway.app.proxy.health import DEGRADED, DOWN, UP, HealthAggregator, format_timestamp
from shared.config import ServiceConfig


SERVICES = {
    "auth": ServiceConfig("auth", "http://auth.test", 30.0, "/api/auth/health"),
    "patient": ServiceConfig("patient", "http://patients.test", 30.0, "/actuator/health"),
    "consultation": ServiceConfig("consultation", "http://consultations.test", 30.0, "/health"),
}


class SlowForwarder(ProxyForwarder):
    """Forwarder whose consultation probe never answers in time."""

    def __init__(self, delay: float):
        super().__init__(httpx.AsyncClient())
        self.delay = delay
        self.paths = []

    async def forward(self, request, service, timeout=None):
        self.paths.append((service.name, request.path))
        if service.name == "consultation":
            await asyncio.sleep(self.delay)
        return ProxyResult(status_code=200, body=b'{"status":"UP"}')


def _aggregator(handler, probe_timeout=1.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HealthAggregator(ProxyForwarder(client), SERVICES, probe_timeout=probe_timeout)


class TestHealthAggregator:
    """Test cases for HealthAggregator."""

    @pytest.mark.asyncio
    async def test_all_up(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "UP"})

        report = await _aggregator(handler).check()

        assert report.status == UP
        assert report.http_status == 200
        assert {name: health.status for name, health in report.services.items()} == {
            "auth": UP,
            "patient": UP,
            "consultation": UP,
        }

    @pytest.mark.asyncio
    async def test_probes_each_service_health_path(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(str(request.url))
            return httpx.Response(200)

        await _aggregator(handler).check()

        assert sorted(paths) == [
            "http://auth.test/api/auth/health",
            "http://consultations.test/health",
            "http://patients.test/actuator/health",
        ]

    @pytest.mark.asyncio
    async def test_non_2xx_probe_is_down(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "patients.test":
                return httpx.Response(503, json={"status": "DOWN"})
            return httpx.Response(200)

        report = await _aggregator(handler).check()

        assert report.status == DEGRADED
        assert report.http_status == 503
        assert report.services["patient"].status == DOWN
        assert report.services["patient"].status_code == 503

    @pytest.mark.asyncio
    async def test_unreachable_service_is_down(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "auth.test":
                raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
            return httpx.Response(200)

        report = await _aggregator(handler).check()

        assert report.status == DEGRADED
        assert report.services["auth"].status == DOWN
        assert report.services["auth"].error == "connection_refused"
        assert report.services["patient"].status == UP

    @pytest.mark.asyncio
    async def test_slow_service_does_not_delay_siblings(self):
        forwarder = SlowForwarder(delay=5.0)
        aggregator = HealthAggregator(forwarder, SERVICES, probe_timeout=0.2)

        start = time.perf_counter()
        report = await aggregator.check()
        elapsed = time.perf_counter() - start

        assert elapsed < 2.0
        assert report.status == DEGRADED
        assert report.services["consultation"].status == DOWN
        assert report.services["consultation"].error == "timeout"
        assert report.services["auth"].status == UP
        assert report.services["patient"].status == UP

    @pytest.mark.asyncio
    async def test_report_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200)

        payload = (await _aggregator(handler).check()).to_dict()

        assert payload["status"] == UP
        assert payload["service"] == "API Gateway"
        assert payload["timestamp"].endswith("Z")
        assert payload["services"]["auth"]["url"] == "http://auth.test"
        assert payload["services"]["auth"]["status_code"] == 200


class TestFormatTimestamp:
    """Test cases for timestamp formatting."""

    def test_utc_with_milliseconds(self):
        value = datetime(2025, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

        assert format_timestamp(value) == "2025-03-01T10:00:00.123Z"

    def test_converts_offset_to_utc(self):
        value = datetime(2025, 3, 1, 7, 0, 0, tzinfo=timezone(timedelta(hours=-3)))

        assert format_timestamp(value) == "2025-03-01T10:00:00.000Z"

    def test_naive_values_are_utc(self):
        assert format_timestamp(datetime(2025, 3, 1, 10, 0)) == "2025-03-01T10:00:00.000Z"
