"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each factory is cached, so the provider client, the store and the refresh
lock are built once per process and shared by every request.
"""

from functools import lru_cache

from dashboard.clients import GoogleOAuthClient, OAuthStateEncoder, SQLiteCredentialStore
from dashboard.core.config import get_settings
from dashboard.services import (
    AuthenticationGate,
    AuthorizationFlow,
    RefreshCoordinator,
    TokenCipherService,
)
from dashboard.utils.rate_limiter import TokenBucketRateLimiter


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Google client secret."""
    settings = get_settings()
    return OAuthStateEncoder(secret_key=settings.google.client_secret)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = get_settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = get_settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_credential_store() -> SQLiteCredentialStore:
    """Provide the shared SQLite credential store."""
    settings = get_settings()
    return SQLiteCredentialStore(settings.credential_db_path, get_token_cipher_service())


@lru_cache()
def get_authorization_flow() -> AuthorizationFlow:
    settings = get_settings()
    return AuthorizationFlow(
        oauth_client=get_google_oauth_client(),
        store=get_credential_store(),
        state_encoder=get_oauth_state_encoder(),
        oauth_settings=settings.oauth,
    )


@lru_cache()
def get_refresh_coordinator() -> RefreshCoordinator:
    """Provide the process-wide coordinator that owns the refresh lock."""
    settings = get_settings()
    return RefreshCoordinator(
        store=get_credential_store(),
        oauth_client=get_google_oauth_client(),
        google_settings=settings.google,
        oauth_settings=settings.oauth,
    )


@lru_cache()
def get_auth_rate_limiter() -> TokenBucketRateLimiter:
    """Provide the per-IP limiter shared by the login and callback routes."""
    settings = get_settings()
    return TokenBucketRateLimiter(
        settings.oauth.rate_limit_requests, settings.oauth.rate_limit_window_seconds
    )


@lru_cache()
def get_authentication_gate() -> AuthenticationGate:
    return AuthenticationGate(get_credential_store())


__all__ = [
    "get_auth_rate_limiter",
    "get_authentication_gate",
    "get_authorization_flow",
    "get_credential_store",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_refresh_coordinator",
    "get_token_cipher_service",
]
