"""API package exports for FastAPI routers."""

from __future__ import annotations

from .engine_api import router as engine_router

__all__ = ["engine_router", "get_routers"]


def get_routers():
    """Return a list of routers that should be mounted."""
    return [engine_router]
