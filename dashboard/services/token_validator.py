"""Decide whether a stored access token can still be handed out."""

from __future__ import annotations

from dashboard.models.credential import Credential

# Long enough to cover the caller's round trip to the provider.
REFRESH_BUFFER_MS = 5 * 60 * 1000


def is_still_valid(
    credential: Credential, now_ms: int, buffer_ms: int = REFRESH_BUFFER_MS
) -> bool:
    """Return True iff the access token outlives ``now_ms + buffer_ms``."""
    return credential.expires_at > now_ms + buffer_ms


__all__ = ["REFRESH_BUFFER_MS", "is_still_valid"]
