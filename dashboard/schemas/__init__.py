"""Public schema exports."""

from .auth import (
    AuthStatusResponse,
    AuthorizationUrlResponse,
    OAuthCallbackResult,
    SessionResponse,
)

__all__ = [
    "AuthStatusResponse",
    "AuthorizationUrlResponse",
    "OAuthCallbackResult",
    "SessionResponse",
]
