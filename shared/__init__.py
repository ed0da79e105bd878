"""
Shared utilities for jwks-to-pem.

This package aggregates common building blocks consumed by the application:

- config: Base configuration via pydantic-settings
- logging: Structured logging to stderr
- errors: Canonical error types
- retry: Async retry helper with backoff

Do not import from jwks_to_pem into shared/.
"""
