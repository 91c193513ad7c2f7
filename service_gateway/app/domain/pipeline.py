"""
Request pipeline for proxied routes.

Stages run in a fixed order, each handing a typed value to the next:

    AuthGate -> RoleGuard -> ServiceResolver -> ProxyForwarder

A stage that cannot continue raises a GatewayError; the pipeline turns
it into an error envelope at its outer boundary. A downstream response
is relayed as-is, whatever its status.
"""

from typing import Optional

from fastapi import Request, Response

from shared.errors import ServiceNotFoundError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..auth.principal import Principal, Role
from ..auth.roles import require_principal, require_role
from ..auth.token_auth import TokenAuthenticator
from ..proxy.forwarder import ProxyFailure, ProxyForwarder, ProxyRequest, ProxyResult
from ..routing.policies import AccessLevel, AccessPolicyTable
from ..routing.resolver import RouteMatch, ServiceResolver
from .error_translator import ErrorTranslator

_ROLE_FOR_LEVEL = {
    AccessLevel.STAFF: Role.STAFF,
    AccessLevel.PATIENT: Role.PATIENT,
}


class GatewayPipeline:
    """Authenticates, authorizes, resolves and forwards one request."""

    def __init__(
        self,
        authenticator: TokenAuthenticator,
        resolver: ServiceResolver,
        policies: AccessPolicyTable,
        forwarder: ProxyForwarder,
        translator: ErrorTranslator,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.authenticator = authenticator
        self.resolver = resolver
        self.policies = policies
        self.forwarder = forwarder
        self.translator = translator
        self.metrics = metrics
        self.logger = get_logger("gateway.pipeline")

    async def handle(self, request: Request) -> Response:
        try:
            return await self._run(request)
        except Exception as exc:
            translated = self.translator.translate(exc)
            if self.metrics is not None:
                self.metrics.record_error(translated.code)
            return self.translator.to_response(exc)

    async def _run(self, request: Request) -> Response:
        # One normalized path drives routing, access checks and forwarding.
        proxy_request = await ProxyRequest.from_request(request)
        path = proxy_request.route_path
        route = self.resolver.match(path)
        access = self.access_for(proxy_request.method, route)

        principal = await self.authenticate(request, access)
        self.authorize(principal, access)
        service_route = self.resolve(path, route)

        outcome = await self.forwarder.forward(proxy_request, service_route.service)
        if isinstance(outcome, ProxyFailure):
            raise outcome.to_error()
        return self.relay(outcome)

    def access_for(self, method: str, route: Optional[RouteMatch]) -> AccessLevel:
        if route is None:
            # Unrouted paths fail at resolution, not at authentication.
            return AccessLevel.PUBLIC
        return self.policies.access_for(route.rule.prefix, method, route.subpath)

    async def authenticate(self, request: Request, access: AccessLevel) -> Optional[Principal]:
        """AuthGate stage."""
        authorization = request.headers.get("Authorization")
        if access is AccessLevel.PUBLIC:
            principal = None
        elif access is AccessLevel.OPTIONAL:
            principal = await self.authenticator.authenticate_optional(authorization)
        else:
            principal = await self.authenticator.authenticate(authorization)
        self.authenticator.attach(request, principal)
        return principal

    def authorize(self, principal: Optional[Principal], access: AccessLevel) -> Optional[Principal]:
        """RoleGuard stage."""
        expected = _ROLE_FOR_LEVEL.get(access)
        if expected is not None:
            return require_role(principal, expected)
        if access is AccessLevel.AUTHENTICATED:
            return require_principal(principal)
        return principal

    def resolve(self, path: str, route: Optional[RouteMatch]) -> RouteMatch:
        """ServiceResolver stage."""
        if route is None:
            raise ServiceNotFoundError(self.resolver.strip_api_prefix(path))
        return route

    @staticmethod
    def relay(result: ProxyResult) -> Response:
        """Return the downstream status, content type and body untouched."""
        headers = {}
        if result.content_type:
            headers["content-type"] = result.content_type
        return Response(content=result.body, status_code=result.status_code, headers=headers)
