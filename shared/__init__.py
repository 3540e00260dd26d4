"""
Shared utilities for the Daylight traffic cache layer.

This package aggregates common building blocks consumed by the service
packages:

- config: Settings via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Timeout + bounded retry around a single upstream call
- secrets_manager: Environment / encrypted-file secret lookup

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
