"""
Shared utilities for the Hospital API Gateway.

This package aggregates common building blocks consumed by the gateway:

- config: Gateway settings via pydantic-settings and the service table
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Failure taxonomy and the error envelope
- base_service: FastAPI application scaffolding

Do not import from service_gateway into shared/.
"""
