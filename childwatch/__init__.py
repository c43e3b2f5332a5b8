"""ChildWatch application package.

This package contains the FastAPI routes, services, and schemas for the
ChildWatch parental-monitoring backend. Subpackages include:
- api: FastAPI route definitions
- core: configuration, moderation config and logging
- services: moderation engine, classifier adapter, storage and push delivery
- schemas: Pydantic models
- workers: background delivery queue
"""

__all__ = [
    "api",
    "core",
    "services",
    "schemas",
    "workers",
]

__version__ = "1.0.0"
