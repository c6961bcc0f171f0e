"""API v1 module."""

from ycworkers.app.api.v1.templates import router as templates_router
from ycworkers.app.api.v1.workers import router as workers_router

__all__ = ["templates_router", "workers_router"]
