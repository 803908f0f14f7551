"""
Shared utilities for the Concert Access Layer.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus counters for access decisions
- errors: Canonical error types and responses
- base_service: Service base class wiring config, logging and metrics

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
