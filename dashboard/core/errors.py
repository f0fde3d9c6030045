"""Exceptions raised across the credential lifecycle."""

from __future__ import annotations

from typing import Optional


class CredentialError(Exception):
    """Base class for credential lifecycle failures."""


class NotAuthenticatedError(CredentialError):
    """Raised when no credential has ever been stored."""

    def __init__(
        self,
        message: str = "No Google credential stored; please log in first.",
        *,
        login_url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.login_url = login_url


class AuthExchangeError(CredentialError):
    """Raised when an authorization code cannot be turned into a credential."""


class RefreshError(CredentialError):
    """Raised when the provider rejects a refresh attempt."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


class StorageError(CredentialError):
    """Raised when the credential store cannot be read or written."""


class RateLimitExceeded(Exception):
    """Raised when a client makes too many authentication attempts."""

    def __init__(self, retry_after: float) -> None:
        super().__init__(f"Rate limit exceeded. Retry after {retry_after:.0f}s")
        self.retry_after = retry_after


__all__ = [
    "AuthExchangeError",
    "CredentialError",
    "NotAuthenticatedError",
    "RateLimitExceeded",
    "RefreshError",
    "StorageError",
]
