"""
Integration tests for Gateway routing flow.

The gateway and the mock hospital services run in-process; every
downstream hop goes through a real ASGI transport.
"""

import pytest
import pytest_asyncio
import httpx

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from mocks.hospital_services.server import MOCK_STATUS_HEADER, create_mock_services
from service_gateway.app.main import create_app
from shared.config import get_config
from shared.test_helpers import bearer, create_mock_jwt_token, create_mock_user, get_mock_settings


SERVICE_HOSTS = {
    "auth": "http://auth.test",
    "patient": "http://patients.test",
    "consultation": "http://consultations.test",
}


class TestGatewayRouting:
    """Integration tests for Gateway routing flow."""

    @pytest.fixture
    def mock_services(self):
        return create_mock_services()

    @pytest.fixture
    def gateway_app(self, mock_services):
        """Gateway wired to the mock services."""
        downstream = httpx.AsyncClient(mounts={
            SERVICE_HOSTS[name]: httpx.ASGITransport(app=service.app)
            for name, service in mock_services.items()
        })
        settings = get_config(**get_mock_settings())
        return create_app(settings, http_client=downstream)

    @pytest_asyncio.fixture
    async def gateway(self, gateway_app):
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=gateway_app),
            base_url="http://gateway.test",
        ) as client:
            yield client

    @pytest.fixture
    def mock_user(self):
        """Create mock user."""
        return create_mock_user(user_id="42", email="maria@hospital.test", role="PACIENTE")

    @pytest.fixture
    def mock_jwt_token(self, mock_user):
        """Create mock JWT token."""
        return create_mock_jwt_token(
            user_id=mock_user["user_id"],
            email=mock_user["email"],
            role=mock_user["role"],
        )

    @pytest.fixture
    def staff_token(self):
        return create_mock_jwt_token(user_id="7", email="ana@hospital.test", role="FUNCIONARIO")

    @pytest.mark.asyncio
    async def test_request_forwarded_with_original_shape(self, gateway, mock_services, mock_jwt_token):
        response = await gateway.get(
            "/api/pacientes/42/historico?page=1",
            headers={**bearer(mock_jwt_token), "X-Client": "web"},
        )

        assert response.status_code == 200
        echoed = response.json()
        assert echoed["service"] == "patient"
        assert echoed["path"] == "/api/pacientes/42/historico"
        assert echoed["query"] == "page=1"
        assert echoed["headers"]["authorization"] == f"Bearer {mock_jwt_token}"
        assert echoed["headers"]["x-client"] == "web"
        assert echoed["headers"]["host"] == "patients.test"

    @pytest.mark.asyncio
    async def test_body_forwarded(self, gateway, staff_token):
        payload = {"pacienteId": 42, "especialidade": "CARDIOLOGIA"}

        response = await gateway.post("/api/consultas", headers=bearer(staff_token), json=payload)

        assert response.status_code == 200
        assert response.json()["service"] == "consultation"
        assert response.json()["body"] == payload

    @pytest.mark.asyncio
    async def test_downstream_status_relayed(self, gateway, mock_jwt_token):
        response = await gateway.get(
            "/api/agendamentos/paciente",
            headers={**bearer(mock_jwt_token), MOCK_STATUS_HEADER: "409"},
        )

        assert response.status_code == 409
        assert response.json()["service"] == "consultation"

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, gateway, mock_jwt_token):
        before = await gateway.get("/api/pacientes", headers=bearer(mock_jwt_token))
        assert before.status_code == 200

        logout = await gateway.post("/api/auth/logout", headers=bearer(mock_jwt_token))
        assert logout.status_code == 200

        after = await gateway.get("/api/pacientes", headers=bearer(mock_jwt_token))
        assert after.status_code == 403
        assert after.json()["code"] == "TOKEN_BLACKLISTED"

    @pytest.mark.asyncio
    async def test_public_login_without_token(self, gateway):
        response = await gateway.post("/api/auth/login", json={"email": "a@b.c", "senha": "123"})

        assert response.status_code == 200
        assert response.json()["service"] == "auth"
        assert "authorization" not in response.json()["headers"]

    @pytest.mark.asyncio
    async def test_role_enforced_before_forwarding(self, gateway, mock_services, mock_jwt_token):
        response = await gateway.get("/api/funcionarios", headers=bearer(mock_jwt_token))

        assert response.status_code == 403
        assert response.json()["code"] == "FUNCIONARIO_REQUIRED"
        assert mock_services["auth"].received == []

    @pytest.mark.asyncio
    async def test_health_all_up(self, gateway):
        response = await gateway.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "UP"

    @pytest.mark.asyncio
    async def test_health_degraded(self, gateway, mock_services):
        mock_services["patient"].healthy = False

        response = await gateway.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "DEGRADED"
        assert data["services"]["patient"]["status"] == "DOWN"
        assert data["services"]["consultation"]["status"] == "UP"
