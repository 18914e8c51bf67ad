"""
Shared utilities for the storefront relay.

This package aggregates common building blocks consumed by all services:

- config: Relay configuration via pydantic-settings
- logging: Structured logging with request correlation and credential redaction
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry policy used by client-side resilience
- base_service: FastAPI service skeleton (middleware, health, error boundary)

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
