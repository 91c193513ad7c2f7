"""
Shared configuration management for the Hospital API Gateway.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEVELOPMENT_ENVS = frozenset({"development", "local"})


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="development")
    log_level: str = Field(default="info")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_window_seconds: int = Field(default=900)
    rate_limit_max_requests: int = Field(default=100)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # CORS
    cors_origin: str = Field(default="http://localhost:4200")

    @property
    def is_development(self) -> bool:
        return self.env.lower() in DEVELOPMENT_ENVS


class GatewaySettings(BaseConfig):
    """Gateway-specific configuration."""

    api_prefix: str = Field(default="/api")

    # Security
    jwt_secret: str = Field(default="minhaChaveSecretaSuperSeguraParaJWT2025HospitalSystem")
    jwt_algorithm: str = Field(default="HS256")
    revocation_check_enabled: bool = Field(default=True)
    revocation_check_timeout: float = Field(default=3.0)
    # Fail-open when the auth service cannot answer the revocation check.
    allow_on_revocation_check_unavailable: bool = Field(default=True)

    # Downstream microservices
    auth_service_url: str = Field(default="http://localhost:8081")
    patient_service_url: str = Field(default="http://localhost:8082")
    consultation_service_url: str = Field(default="http://localhost:8083")
    service_timeout: float = Field(default=30.0)

    # Health probes
    auth_health_path: str = Field(default="/api/auth/health")
    patient_health_path: str = Field(default="/actuator/health")
    consultation_health_path: str = Field(default="/health")
    health_check_timeout: float = Field(default=5.0)


@dataclass(frozen=True)
class ServiceConfig:
    """Immutable routing target for one downstream microservice."""

    name: str
    base_url: str
    timeout: float
    health_path: str = "/health"

    def url_for(self, path: str, query: str = "") -> str:
        url = f"{self.base_url.rstrip('/')}{path}"
        if query:
            url = f"{url}?{query}"
        return url


AUTH_SERVICE = "auth"
PATIENT_SERVICE = "patient"
CONSULTATION_SERVICE = "consultation"


def build_service_table(settings: GatewaySettings) -> Mapping[str, ServiceConfig]:
    """Build the read-only service table consumed by the routing core."""
    table = {
        AUTH_SERVICE: ServiceConfig(
            name=AUTH_SERVICE,
            base_url=settings.auth_service_url,
            timeout=settings.service_timeout,
            health_path=settings.auth_health_path,
        ),
        PATIENT_SERVICE: ServiceConfig(
            name=PATIENT_SERVICE,
            base_url=settings.patient_service_url,
            timeout=settings.service_timeout,
            health_path=settings.patient_health_path,
        ),
        CONSULTATION_SERVICE: ServiceConfig(
            name=CONSULTATION_SERVICE,
            base_url=settings.consultation_service_url,
            timeout=settings.service_timeout,
            health_path=settings.consultation_health_path,
        ),
    }
    return MappingProxyType(table)


def get_config(**overrides) -> GatewaySettings:
    """Get gateway configuration, applying explicit overrides over the environment."""
    return GatewaySettings(**overrides)


def normalize_prefix(prefix: Optional[str]) -> str:
    """Return a prefix with a leading slash and no trailing slash ('' for root)."""
    if not prefix:
        return ""
    prefix = "/" + prefix.strip("/")
    return "" if prefix == "/" else prefix
