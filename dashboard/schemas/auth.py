"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class AuthorizationUrlResponse(BaseModel):
    """Consent URL handed to clients that do not follow redirects."""

    authorization_url: str = Field(..., description="Google consent screen URL.")


class OAuthCallbackResult(BaseModel):
    status: str = Field("connected", description="Outcome of the code exchange.")
    message: str
    expires_at: int = Field(..., description="Access token expiry in epoch milliseconds.")


class AuthStatusResponse(BaseModel):
    """Authentication status reported to the front-end."""

    authenticated: bool
    message: str
    login_url: Optional[str] = Field(
        None, description="Where to send the user when not authenticated."
    )


class SessionResponse(BaseModel):
    authenticated: bool = True
    expires_at: int = Field(..., description="Access token expiry in epoch milliseconds.")
    expires_in_seconds: int


__all__ = [
    "AuthStatusResponse",
    "AuthorizationUrlResponse",
    "OAuthCallbackResult",
    "SessionResponse",
]
