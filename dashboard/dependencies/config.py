"""Settings dependency, kept separate so tests can override it on its own."""

from dashboard.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    return get_settings()


__all__ = ["get_app_settings"]
