"""API routers for all endpoints."""

from paydash.routers import analytics, export, notifications

__all__ = [
    "analytics",
    "export",
    "notifications",
]
