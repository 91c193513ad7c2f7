"""
Downstream request forwarding for the gateway.
"""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union
from urllib.parse import unquote

import httpx
from starlette.requests import Request

from shared.config import ServiceConfig
from shared.errors import GatewayError, ServiceError, ServiceTimeoutError, ServiceUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

Headers = Sequence[Tuple[str, str]]

# Connection-identifying headers owned by each hop.
STRIPPED_HEADERS = frozenset({"host", "content-length", "connection"})
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
)


def remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments (RFC 3986, section 5.2.4).

    Percent-encoded dots count as dots, so the path checked for access is
    the path the downstream service ends up serving.
    """
    output: List[str] = []
    ends_in_dots = False
    for segment in path.split("/")[1:] if path.startswith("/") else path.split("/"):
        dots = segment.lower().replace("%2e", ".")
        if dots == ".":
            ends_in_dots = True
        elif dots == "..":
            if output:
                output.pop()
            ends_in_dots = True
        else:
            output.append(segment)
            ends_in_dots = False
    if ends_in_dots:
        output.append("")
    return "/" + "/".join(output)


@dataclass(frozen=True)
class ProxyRequest:
    """Inbound request as it will be replayed downstream."""

    method: str
    path: str
    query: str = ""
    headers: Headers = ()
    body: Optional[bytes] = None

    @classmethod
    async def from_request(cls, request: Request) -> "ProxyRequest":
        raw_path = request.scope.get("raw_path")
        path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
        query = request.scope.get("query_string", b"").decode("latin-1")
        headers = tuple(
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in request.headers.raw
        )
        body = await request.body()
        return cls(
            method=request.method.upper(),
            path=remove_dot_segments(path),
            query=query,
            headers=headers,
            body=body or None,
        )

    @property
    def route_path(self) -> str:
        """Decoded form of ``path``, the one routing and access checks see."""
        return unquote(self.path)


@dataclass(frozen=True)
class ProxyResult:
    """Any response received from a downstream service, whatever its status."""

    status_code: int
    headers: Headers = ()
    body: bytes = b""
    elapsed: float = 0.0

    @property
    def content_type(self) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == "content-type":
                return value
        return None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    DNS_FAILURE = "dns_failure"
    INVALID_RESPONSE = "invalid_response"
    OTHER = "other"


@dataclass(frozen=True)
class ProxyFailure:
    """Transport-level failure: no downstream response was received."""

    kind: FailureKind
    service: str
    cause: str = ""
    elapsed: float = field(default=0.0, compare=False)

    def to_error(self) -> GatewayError:
        if self.kind is FailureKind.TIMEOUT:
            return ServiceTimeoutError(self.service)
        if self.kind in (FailureKind.CONNECTION_REFUSED, FailureKind.DNS_FAILURE):
            return ServiceUnavailableError(self.service)
        return ServiceError(self.service, self.cause or "Transport error")


ProxyOutcome = Union[ProxyResult, ProxyFailure]


def sanitize_headers(headers: Headers) -> List[Tuple[str, str]]:
    """Drop per-hop headers, keeping every other header and its order."""
    return [(name, value) for name, value in headers if name.lower() not in STRIPPED_HEADERS]


def classify_connect_error(exc: BaseException) -> FailureKind:
    """Tell name resolution failures apart from refused connections."""
    seen = set()
    cause: Optional[BaseException] = exc
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, socket.gaierror):
            return FailureKind.DNS_FAILURE
        if isinstance(cause, ConnectionRefusedError):
            return FailureKind.CONNECTION_REFUSED
        cause = cause.__cause__ or cause.__context__

    message = str(exc).lower()
    if any(marker in message for marker in _DNS_MARKERS):
        return FailureKind.DNS_FAILURE
    return FailureKind.CONNECTION_REFUSED


class ProxyForwarder:
    """Replays requests against a downstream service and relays what comes back."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self.metrics = metrics
        self.logger = get_logger("gateway.proxy")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def forward(
        self,
        request: ProxyRequest,
        service: ServiceConfig,
        timeout: Optional[float] = None,
    ) -> ProxyOutcome:
        """Forward ``request`` to ``service``.

        Every HTTP response, 4xx and 5xx included, comes back as a
        ProxyResult. Only transport failures produce a ProxyFailure.
        No retries are attempted.
        """
        method = request.method.upper()
        url = service.url_for(request.path, request.query)
        content = request.body if method in BODY_METHODS and request.body else None
        bound = service.timeout if timeout is None else timeout

        self.logger.info("Proxy request", service=service.name, method=method, url=url)
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                url,
                headers=sanitize_headers(request.headers),
                content=content,
                timeout=bound,
            )
        except httpx.TimeoutException as exc:
            return self._failure(service, FailureKind.TIMEOUT, exc, start)
        except httpx.ConnectError as exc:
            return self._failure(service, classify_connect_error(exc), exc, start)
        except httpx.TransportError as exc:
            return self._failure(service, FailureKind.OTHER, exc, start)
        except httpx.DecodingError as exc:
            return self._failure(service, FailureKind.INVALID_RESPONSE, exc, start)
        except httpx.RequestError as exc:
            return self._failure(service, FailureKind.OTHER, exc, start)

        elapsed = time.perf_counter() - start
        self._record(service.name, f"status_{response.status_code // 100}xx", elapsed)
        self.logger.info(
            "Proxy response",
            service=service.name,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
        return ProxyResult(
            status_code=response.status_code,
            headers=tuple(response.headers.multi_items()),
            body=response.content,
            elapsed=elapsed,
        )

    def _failure(
        self,
        service: ServiceConfig,
        kind: FailureKind,
        exc: Exception,
        start: float,
    ) -> ProxyFailure:
        elapsed = time.perf_counter() - start
        cause = str(exc) or type(exc).__name__
        self._record(service.name, kind.value, elapsed)
        self.logger.error(
            "Proxy transport failure",
            service=service.name,
            failure=kind.value,
            error=cause,
        )
        return ProxyFailure(kind=kind, service=service.name, cause=cause, elapsed=elapsed)

    def _record(self, service: str, outcome: str, elapsed: float) -> None:
        if self.metrics is not None:
            self.metrics.record_proxy_call(service, outcome, elapsed)
