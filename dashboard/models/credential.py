"""
Domain models for OAuth credential persistence.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class Credential(BaseModel):
    """The single credential set stored for this deployment."""

    access_token: str
    refresh_token: str
    expires_at: int = Field(
        ..., description="Access token expiry in milliseconds since the epoch."
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Time of the last write, either the login or the latest refresh.",
    )


class TokenGrant(BaseModel):
    """Payload returned by the provider token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(
        None, description="Relative access token lifetime in seconds."
    )
    expiry_date: Optional[int] = Field(
        None, description="Absolute access token expiry in milliseconds since the epoch."
    )
    scope: Optional[str] = None
    token_type: Optional[str] = None

    def resolve_expires_at(self, now_ms: int) -> Optional[int]:
        """Return the absolute expiry, preferring the provider's absolute value."""
        if self.expiry_date:
            return int(self.expiry_date)
        if self.expires_in is not None and self.expires_in > 0:
            return now_ms + int(self.expires_in) * 1000
        return None


__all__ = ["Credential", "TokenGrant"]
