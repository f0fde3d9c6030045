"""
FastAPI application entrypoint for the dashboard backend.
"""

from __future__ import annotations

from fastapi import FastAPI

from dashboard.api.errors import register_exception_handlers
from dashboard.api.routes import router as api_router
from dashboard.core.config import get_settings
from dashboard.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Personal Dashboard Backend",
        version="0.1.0",
        description="Google Calendar and Tasks access on behalf of a single user.",
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
