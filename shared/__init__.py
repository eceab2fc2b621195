"""
Shared utilities for the storefront catalog services.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for upstream calls
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service shell (health, metrics, error handlers)

Do not import from service packages into shared/.
"""
