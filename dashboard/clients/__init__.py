"""Expose constructed client wrappers."""

from .google_auth import GoogleOAuthClient, OAuthStateEncoder
from .sqlite_store import SQLiteCredentialStore

__all__ = [
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "SQLiteCredentialStore",
]
