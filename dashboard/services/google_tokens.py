"""
Helpers for retrieving and refreshing the stored Google OAuth credential.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from google.oauth2.credentials import Credentials

from dashboard.core.config import GoogleSettings, OAuthSettings
from dashboard.core.errors import NotAuthenticatedError, RefreshError, StorageError
from dashboard.models.credential import Credential
from dashboard.services.token_validator import is_still_valid
from dashboard.utils.clock import from_epoch_ms, now_ms

if TYPE_CHECKING:
    from dashboard.clients import GoogleOAuthClient, SQLiteCredentialStore

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Hands out usable access tokens, refreshing the stored credential lazily.

    Load, validation, refresh and write-back all happen under one lock, so
    requests that arrive while a refresh is in flight wait for it and then
    reuse the new token instead of calling the provider a second time.
    """

    def __init__(
        self,
        store: "SQLiteCredentialStore",
        oauth_client: "GoogleOAuthClient",
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._google = google_settings
        self._oauth_settings = oauth_settings
        self._clock = clock
        self._buffer_ms = oauth_settings.refresh_buffer_seconds * 1000
        self._lock = asyncio.Lock()

    async def get_valid_access_token(self) -> str:
        """Return an access token that stays valid beyond the refresh buffer."""
        credential = await self.get_valid_credential()
        return credential.access_token

    async def get_valid_credential(self) -> Credential:
        async with self._lock:
            credential = self._store.load()
            if credential is None:
                raise NotAuthenticatedError()

            if is_still_valid(credential, self._clock(), self._buffer_ms):
                return credential

            logger.info("Access token expires at %s; refreshing", credential.expires_at)
            return await self._refresh_locked(credential.refresh_token)

    async def refresh(self, refresh_token: str) -> str:
        """Force a refresh with ``refresh_token`` and return the new access token."""
        async with self._lock:
            credential = await self._refresh_locked(refresh_token)
        return credential.access_token

    async def get_google_credentials(self) -> Credentials:
        """Build google-auth credentials for client libraries talking to Google."""
        credential = await self.get_valid_credential()
        return Credentials(
            token=credential.access_token,
            refresh_token=credential.refresh_token,
            token_uri=self._google.token_url,
            client_id=self._google.client_id,
            client_secret=self._google.client_secret,
            scopes=list(self._oauth_settings.scopes),
            # google-auth compares expiry against a naive UTC clock.
            expiry=from_epoch_ms(credential.expires_at).replace(tzinfo=None),
        )

    async def _refresh_locked(self, refresh_token: str) -> Credential:
        requested_at = self._clock()
        try:
            grant = await self._oauth.refresh_access_token(refresh_token)
        except RefreshError as exc:
            self._handle_rejection(exc)
            raise

        expires_at = grant.resolve_expires_at(requested_at)
        if expires_at is None:
            raise RefreshError("Refresh response carried no expiry information.")

        rotated = grant.refresh_token if grant.refresh_token != refresh_token else None
        refreshed_at = from_epoch_ms(requested_at)
        self._store.update_after_refresh(
            refresh_token,
            access_token=grant.access_token,
            expires_at=expires_at,
            rotated_refresh_token=rotated,
            refreshed_at=refreshed_at,
        )
        if rotated:
            logger.info("Provider rotated the refresh token; stored the new one")
        logger.info("Refreshed Google access token; expires at %s", expires_at)

        return Credential(
            access_token=grant.access_token,
            refresh_token=rotated or refresh_token,
            expires_at=expires_at,
            created_at=refreshed_at,
        )

    def _handle_rejection(self, exc: RefreshError) -> None:
        logger.warning(
            "Google rejected the token refresh (%s)", exc.error_code or "no error code"
        )
        if exc.error_code == "invalid_grant" and self._oauth_settings.clear_on_invalid_grant:
            logger.warning("Clearing stored credential after invalid_grant")
            try:
                self._store.clear()
            except StorageError:
                # The RefreshError is what the caller acts on; keep it.
                logger.exception("Failed to clear stored credential after invalid_grant")


__all__ = ["RefreshCoordinator"]
