"""
Google OAuth utilities.

These helpers build consent URLs, sign OAuth state values and talk to the
token endpoint for both the authorization-code and refresh-token grants.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from hashlib import sha256
from typing import Any, Dict, Optional, Sequence, Type
from urllib.parse import urlencode

import anyio
import httpx
from pydantic import ValidationError

from dashboard.core.config import GoogleSettings, OAuthSettings
from dashboard.core.errors import AuthExchangeError, CredentialError, RefreshError
from dashboard.models.credential import TokenGrant

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise AuthExchangeError("Malformed OAuth state value.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise AuthExchangeError("Invalid OAuth state signature.")
        return json.loads(serialized)


class GoogleOAuthClient:
    """Build Google authorization URLs and call the token endpoint."""

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def token_url(self) -> str:
        return self._google.token_url

    def build_authorization_url(self, *, scopes: Sequence[str], state: str) -> str:
        """
        Construct the Google OAuth consent URL.

        ``prompt=consent`` is sent on every call because Google omits the refresh
        token when a user re-approves an app they already granted.
        """
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self._google.auth_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for a token grant."""
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }
        return await self._request_token(payload, AuthExchangeError)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a stored refresh token."""
        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        return await self._request_token(payload, RefreshError)

    async def _request_token(
        self, payload: Dict[str, str], error_cls: Type[CredentialError]
    ) -> TokenGrant:
        grant_type = payload["grant_type"]
        timeout = self._oauth.request_timeout_seconds
        try:
            # httpx timeouts apply per phase; fail_after bounds the whole call.
            with anyio.fail_after(timeout):
                async with httpx.AsyncClient(
                    timeout=timeout, transport=self._transport
                ) as client:
                    response = await client.post(
                        self.token_url,
                        data=payload,
                        headers={"Accept": "application/json"},
                    )
        except TimeoutError as exc:
            logger.warning("Token request (%s) exceeded %ss", grant_type, timeout)
            raise _build_error(
                error_cls, f"Token endpoint did not answer within {timeout}s."
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Token request (%s) failed: %s", grant_type, exc)
            raise _build_error(
                error_cls, f"Token endpoint unreachable: {exc}"
            ) from exc

        if response.status_code != httpx.codes.OK:
            error_code, description = _parse_error(response)
            logger.warning(
                "Token request (%s) rejected with %s: %s",
                grant_type,
                response.status_code,
                error_code or "unknown_error",
            )
            raise _build_error(
                error_cls,
                description or f"Token endpoint returned {response.status_code}.",
                error_code=error_code,
                status_code=response.status_code,
            )

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise _build_error(
                error_cls, "Incomplete token payload returned from Google."
            ) from exc


def _parse_error(response: httpx.Response) -> tuple[Optional[str], Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return None, response.text or None
    if not isinstance(body, dict):
        return None, response.text or None
    error_code = body.get("error")
    if isinstance(error_code, dict):
        # Some Google endpoints nest {"error": {"status": ..., "message": ...}}.
        return error_code.get("status"), error_code.get("message")
    return error_code, body.get("error_description")


def _build_error(
    error_cls: Type[CredentialError],
    message: str,
    *,
    error_code: Optional[str] = None,
    status_code: Optional[int] = None,
) -> CredentialError:
    if error_cls is RefreshError:
        return RefreshError(message, error_code=error_code, status_code=status_code)
    return error_cls(message)


__all__ = [
    "GoogleOAuthClient",
    "OAuthStateEncoder",
]
