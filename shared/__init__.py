"""
Shared utilities for SiteFlow services.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Closed error-code taxonomy and exception types
- envelope: Uniform success/error response envelope
- base_service: FastAPI service skeleton with error handling

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
