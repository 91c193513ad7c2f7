"""
Mock hospital microservices for exercising the gateway end to end.

One ``MockHospitalService`` stands in for each downstream service. Every
unmatched request is echoed back as JSON so tests can see exactly what
the gateway forwarded. The mock auth service also answers the token
verification endpoint and remembers tokens revoked through logout.
"""

import json
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

MOCK_STATUS_HEADER = "X-Mock-Status"


class MockHospitalService:
    """Mock downstream service implementation."""

    def __init__(
        self,
        name: str,
        health_path: str = "/health",
        port: int = 8080,
        verifies_tokens: bool = False,
    ):
        self.name = name
        self.health_path = health_path
        self.port = port
        self.verifies_tokens = verifies_tokens
        self.healthy = True
        self.revoked_tokens: Set[str] = set()
        self.received: list = []
        self.logger = get_logger(f"mock.{name}")
        self.app = FastAPI(title=f"Mock {name} service", version="1.0.0")

        self._setup_routes()

    def revoke(self, token: str) -> None:
        self.revoked_tokens.add(token)

    def _setup_routes(self):
        """Set up mock routes. The echo catch-all is registered last."""

        @self.app.get(self.health_path)
        async def health():
            if not self.healthy:
                return JSONResponse(status_code=503, content={"status": "DOWN"})
            return {"status": "UP", "service": self.name}

        if self.verifies_tokens:

            @self.app.get("/api/auth/verify")
            async def verify(request: Request):
                token = _bearer_token(request)
                if token is None:
                    return JSONResponse(status_code=401, content={"valid": False})
                if token in self.revoked_tokens:
                    return JSONResponse(status_code=401, content={"valid": False, "reason": "revoked"})
                return {"valid": True}

            @self.app.post("/api/auth/logout")
            async def logout(request: Request):
                token = _bearer_token(request)
                if token:
                    self.revoke(token)
                return {"message": "Logout realizado com sucesso"}

        @self.app.api_route(
            "/{path:path}",
            methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
        )
        async def echo(request: Request, path: str):
            body = await request.body()
            received = {
                "service": self.name,
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query,
                "headers": {key: value for key, value in request.headers.items()},
                "body": _decode_body(body),
            }
            self.received.append(received)
            self.logger.info("Mock request received", method=request.method, path=request.url.path)

            status_code = int(request.headers.get(MOCK_STATUS_HEADER, "200"))
            return JSONResponse(status_code=status_code, content=received)


def _bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def _decode_body(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")


def create_mock_services() -> Dict[str, MockHospitalService]:
    """Create the three downstream services with their real health paths."""
    return {
        "auth": MockHospitalService("auth", "/api/auth/health", port=8081, verifies_tokens=True),
        "patient": MockHospitalService("patient", "/actuator/health", port=8082),
        "consultation": MockHospitalService("consultation", "/health", port=8083),
    }


if __name__ == "__main__":
    import sys

    import uvicorn

    service = create_mock_services()[sys.argv[1] if len(sys.argv) > 1 else "auth"]
    uvicorn.run(service.app, host="0.0.0.0", port=service.port)
