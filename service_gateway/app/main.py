"""
API Gateway service for the hospital management platform.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import AUTH_SERVICE, GatewaySettings, build_service_table, get_config
from shared.errors import RateLimitError

from .adapters.auth_client import AuthClient
from .auth.token_auth import TokenAuthenticator
from .domain.error_translator import ErrorTranslator
from .domain.pipeline import GatewayPipeline
from .proxy.forwarder import ProxyForwarder
from .proxy.health import HealthAggregator, format_timestamp
from .ratelimit.fixed_window import FixedWindowRateLimiter, RateLimitMiddleware
from .routing.policies import AccessPolicyTable
from .routing.resolver import ServiceResolver

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class GatewayService(BaseService):
    """API Gateway service implementation."""

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
    ):
        settings = settings or get_config()
        self.settings = settings
        self.services = build_service_table(settings)

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()

        self.rate_limiter = rate_limiter
        if self.rate_limiter is None and settings.rate_limit_enabled:
            self.rate_limiter = FixedWindowRateLimiter(
                settings.redis_url,
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        self.rate_limit_middleware = RateLimitMiddleware(self.rate_limiter) if self.rate_limiter else None

        super().__init__("gateway", settings)

        auth_client = None
        if settings.revocation_check_enabled:
            auth_client = AuthClient(
                self.services[AUTH_SERVICE].base_url,
                timeout=settings.revocation_check_timeout,
                client=self.http_client,
            )
        self.auth_client = auth_client
        self.authenticator = TokenAuthenticator(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            auth_client=auth_client,
            allow_on_revocation_check_unavailable=settings.allow_on_revocation_check_unavailable,
            metrics=self.metrics,
        )
        self.resolver = ServiceResolver(self.services, api_prefix=settings.api_prefix)
        self.policies = AccessPolicyTable()
        self.forwarder = ProxyForwarder(self.http_client, metrics=self.metrics)
        self.translator = ErrorTranslator(expose_internal_details=settings.is_development)
        self.pipeline = GatewayPipeline(
            self.authenticator,
            self.resolver,
            self.policies,
            self.forwarder,
            self.translator,
            metrics=self.metrics,
        )
        self.health = HealthAggregator(
            self.forwarder,
            self.services,
            probe_timeout=settings.health_check_timeout,
        )

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_service_middleware(self):
        """Enforce the per-client request budget before any routing work."""

        @self.app.middleware("http")
        async def enforce_rate_limit(request: Request, call_next):
            if self.rate_limit_middleware is None or self.rate_limit_middleware.is_exempt(request):
                return await call_next(request)

            result = await self.rate_limit_middleware.check_request(request)
            headers = RateLimitMiddleware.headers_for(result)
            if not result.get("allowed", True):
                self.metrics.increment_counter("rate_limit_hits_total")
                error = RateLimitError(details={
                    "limit": result.get("limit"),
                    "reset_in_seconds": result.get("reset_in_seconds"),
                })
                return self.error_response(error, headers=headers)

            response = await call_next(request)
            response.headers.update(headers)
            return response

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes. The proxy catch-all is registered last."""
        api_prefix = self.resolver.api_prefix

        async def api_info():
            """Gateway information and route groups."""
            return {
                "service": "Hospital Management API Gateway",
                "version": "1.0.0",
                "timestamp": format_timestamp(datetime.now(timezone.utc)),
                "endpoints": {
                    rule.prefix.strip("/"): f"{api_prefix}{rule.prefix}"
                    for rule in self.resolver.rules
                },
            }

        self.app.add_api_route(api_prefix or "/", api_info, methods=["GET"])
        if api_prefix:
            self.app.add_api_route(f"{api_prefix}/", api_info, methods=["GET"], include_in_schema=False)

        @self.app.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
        async def proxy(request: Request) -> Response:
            return await self.pipeline.handle(request)

    async def _health_report(self) -> Tuple[int, Dict[str, Any]]:
        report = await self.health.check()
        return report.http_status, report.to_dict()

    def error_response(self, exc: Exception, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
        translated = self.translator.translate(exc)
        self.metrics.record_error(translated.code)
        return self.translator.to_response(exc, headers=headers)

    async def on_shutdown(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()
        if self.rate_limiter is not None:
            await self.rate_limiter.close()


def create_app(settings: Optional[GatewaySettings] = None, **kwargs):
    """Create FastAPI application."""
    service = GatewayService(settings, **kwargs)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
