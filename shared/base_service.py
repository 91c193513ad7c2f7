"""
Base service class for the Hospital API Gateway.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple
import time
import os

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import BaseConfig
from shared.errors import ErrorEnvelope, GatewayError, MethodNotAllowedError, ServiceNotFoundError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, config: BaseConfig):
        self.service_name = service_name
        self.config = config
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.on_startup()
            try:
                yield
            finally:
                await self.on_shutdown()

        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Hospital Management - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.is_development else None,
            redoc_url="/redoc" if self.config.is_development else None,
            lifespan=lifespan,
        )

    def _setup_middleware(self):
        """Set up middleware. Middleware added last runs first."""

        self._setup_service_middleware()

        @self.app.middleware("http")
        async def add_request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()
            try:
                response = await call_next(request)

                duration = time.time() - start_time
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=self._metrics_endpoint(request),
                    status_code=response.status_code,
                    duration=duration
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )

                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                clear_context()

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.cors_origin == "*" else [self.config.cors_origin],
            allow_credentials=self.config.cors_origin != "*",
            allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
            allow_headers=["Content-Type", "Authorization"],
        )

    def _setup_service_middleware(self):
        """Hook for service-specific middleware that runs inside request logging."""

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            status_code, payload = await self._health_report()
            self.metrics.record_health_check(str(payload.get("status", "unknown")))
            return JSONResponse(status_code=status_code, content=payload)

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=self.metrics.render(),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(GatewayError)
        async def gateway_exception_handler(request: Request, exc: GatewayError):
            return self.error_response(exc)

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            return self.error_response(self.http_error(request, exc), headers=exc.headers)

    def http_error(self, request: Request, exc: StarletteHTTPException) -> GatewayError:
        """Map a framework-raised HTTP error onto the gateway error kinds."""
        if exc.status_code == 404:
            return ServiceNotFoundError(request.url.path)
        if exc.status_code == 405:
            return MethodNotAllowedError(request.method)
        return GatewayError(str(exc.detail))

    async def _health_report(self) -> Tuple[int, Dict[str, Any]]:
        """Return (status code, body) for /health. Override in subclasses."""
        return 200, {
            "service": self.service_name,
            "status": "UP",
            "uptime_seconds": self._get_uptime(),
            "version": "1.0.0",
            "commit": os.getenv("GIT_COMMIT", "unknown"),
        }

    def error_response(self, exc: Exception, headers: Optional[Dict[str, str]] = None) -> Response:
        """Render a failure as an error envelope. Override in subclasses."""
        self.logger.error("Unhandled exception", error=str(exc))
        envelope = ErrorEnvelope(error="Internal server error", code="INTERNAL_SERVER_ERROR")
        return JSONResponse(status_code=500, content=envelope.to_content(), headers=headers)

    async def on_startup(self) -> None:
        """Startup hook."""

    async def on_shutdown(self) -> None:
        """Shutdown hook."""

    def _metrics_endpoint(self, request: Request) -> str:
        route = request.scope.get("route")
        path = getattr(route, "path", None)
        return path or request.url.path

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=host or self.config.host,
            port=port or self.config.port,
            log_level=self.config.log_level.lower()
        )
