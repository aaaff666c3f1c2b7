"""
Shared utilities for the storefront integrity layer.

This package aggregates common building blocks consumed by services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation and secret redaction
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- security: Constant-time comparison and token generation
- retry: Retry decorator for outbound provider calls

Do not import from service_* packages into shared/.
"""
