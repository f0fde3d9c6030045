"""
Login handshake: consent URL construction and authorization-code exchange.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from dashboard.core.config import OAuthSettings
from dashboard.core.errors import AuthExchangeError
from dashboard.models.credential import Credential
from dashboard.utils.clock import from_epoch_ms, now_ms

if TYPE_CHECKING:
    from dashboard.clients import GoogleOAuthClient, OAuthStateEncoder, SQLiteCredentialStore

logger = logging.getLogger(__name__)


class AuthorizationFlow:
    """Runs the first half of the credential lifecycle: getting one."""

    def __init__(
        self,
        oauth_client: "GoogleOAuthClient",
        store: "SQLiteCredentialStore",
        state_encoder: "OAuthStateEncoder",
        oauth_settings: OAuthSettings,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._state_encoder = state_encoder
        self._settings = oauth_settings
        self._clock = clock

    def build_consent_url(self, scopes: Optional[Sequence[str]] = None) -> str:
        """Return a consent URL that requests offline access with a signed state."""
        state = self._state_encoder.encode(
            {"nonce": uuid.uuid4().hex, "issued_at": self._clock()}
        )
        return self._oauth.build_authorization_url(
            scopes=list(scopes or self._settings.scopes), state=state
        )

    def verify_state(self, state: str) -> None:
        """Reject state values we did not sign or that outlived their TTL."""
        payload = self._state_encoder.decode(state)
        issued_at = payload.get("issued_at")
        if not isinstance(issued_at, int):
            raise AuthExchangeError("Missing issued_at in state token.")
        if self._clock() - issued_at > self._settings.state_ttl_seconds * 1000:
            raise AuthExchangeError("OAuth state token has expired.")

    async def exchange_code(self, code: str) -> Credential:
        """
        Exchange ``code`` for a credential and persist it.

        Nothing is written unless the provider returned a complete grant, so a
        failed exchange leaves any previously stored credential in place. A
        ``StorageError`` from the store propagates unchanged.
        """
        requested_at = self._clock()
        grant = await self._oauth.exchange_authorization_code(code)

        expires_at = grant.resolve_expires_at(requested_at)
        if expires_at is None:
            raise AuthExchangeError("Unable to determine token expiration time.")
        if not grant.refresh_token:
            raise AuthExchangeError("Google did not return a refresh token.")

        credential = Credential(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=expires_at,
            created_at=from_epoch_ms(requested_at),
        )
        self._store.save(credential)
        logger.info("Stored new Google credential; access token expires at %s", expires_at)
        return credential


__all__ = ["AuthorizationFlow"]
