"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_auth_rate_limiter,
    get_authentication_gate,
    get_authorization_flow,
    get_credential_store,
    get_google_oauth_client,
    get_oauth_state_encoder,
    get_refresh_coordinator,
    get_token_cipher_service,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_auth_rate_limiter",
    "get_authentication_gate",
    "get_authorization_flow",
    "get_credential_store",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_refresh_coordinator",
    "get_token_cipher_service",
]
