"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential services and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


_SETTINGS_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GoogleSettings(BaseSettings):
    """Configuration required for the Google OAuth endpoints."""

    model_config = _SETTINGS_CONFIG

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="GOOGLE_REDIRECT_URI")
    auth_url: str = Field(
        "https://accounts.google.com/o/oauth2/v2/auth",
        validation_alias="GOOGLE_AUTH_URL",
    )
    token_url: str = Field(
        "https://oauth2.googleapis.com/token",
        validation_alias="GOOGLE_TOKEN_URL",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class OAuthSettings(BaseSettings):
    """OAuth flow and credential lifecycle configuration."""

    model_config = _SETTINGS_CONFIG

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    refresh_buffer_seconds: int = Field(
        300,
        validation_alias="OAUTH_REFRESH_BUFFER_SECONDS",
        description="Access tokens expiring within this window are refreshed first.",
    )
    request_timeout_seconds: float = Field(
        10.0,
        validation_alias="OAUTH_REQUEST_TIMEOUT",
        description="Upper bound for every call to the provider token endpoint.",
    )
    clear_on_invalid_grant: bool = Field(
        False,
        validation_alias="OAUTH_CLEAR_ON_INVALID_GRANT",
        description=(
            "Drop the stored credential when the provider answers a refresh "
            "with invalid_grant, forcing a new login."
        ),
    )
    rate_limit_requests: int = Field(
        10,
        ge=1,
        validation_alias="AUTH_RATE_LIMIT_REQUESTS",
        description="Login and callback attempts allowed per client IP per window.",
    )
    rate_limit_window_seconds: float = Field(
        900.0,
        gt=0,
        validation_alias="AUTH_RATE_LIMIT_WINDOW_SECONDS",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "https://www.googleapis.com/auth/calendar",
            "https://www.googleapis.com/auth/tasks",
        ),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _SETTINGS_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    credential_db_path: str = Field(
        "./data/dashboard.db",
        validation_alias="CREDENTIAL_DB_PATH",
        description="SQLite file holding the single stored credential set.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
