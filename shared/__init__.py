"""
Shared utilities for the Edge Proxy.

This package aggregates common building blocks:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service shell

Do not import from service_proxy into shared/.
"""
