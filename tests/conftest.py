"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from dashboard.clients import SQLiteCredentialStore
from dashboard.core.config import GoogleSettings, OAuthSettings
from dashboard.services import TokenCipherService


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="secret-key")


@pytest.fixture
def store(tmp_path: Path, cipher: TokenCipherService) -> SQLiteCredentialStore:
    return SQLiteCredentialStore(str(tmp_path / "credentials.db"), cipher)


@pytest.fixture
def google_settings() -> GoogleSettings:
    return GoogleSettings(
        GOOGLE_CLIENT_ID="client",
        GOOGLE_CLIENT_SECRET="secret",
        GOOGLE_REDIRECT_URI="https://example.com/callback",
    )


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings()
