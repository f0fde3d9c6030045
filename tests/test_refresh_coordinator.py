from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from dashboard.clients import SQLiteCredentialStore
from dashboard.core.config import GoogleSettings, OAuthSettings
from dashboard.core.errors import NotAuthenticatedError, RefreshError, StorageError
from dashboard.models.credential import Credential, TokenGrant
from dashboard.services.google_tokens import RefreshCoordinator

NOW = 1_700_000_000_000


class DummyOAuthClient:
    def __init__(
        self,
        *,
        grant: TokenGrant | None = None,
        error: RefreshError | None = None,
        delay: float = 0.0,
    ) -> None:
        self.grant = grant or TokenGrant(access_token="tok2", expires_in=3600)
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self.calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.grant


def _seed(store: SQLiteCredentialStore, *, expires_in_ms: int) -> Credential:
    credential = Credential(
        access_token="tok1",
        refresh_token="refresh-1",
        expires_at=NOW + expires_in_ms,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    store.save(credential)
    return credential


def _coordinator(
    store: SQLiteCredentialStore,
    oauth_client: DummyOAuthClient,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> RefreshCoordinator:
    return RefreshCoordinator(
        store=store,
        oauth_client=oauth_client,
        google_settings=google_settings,
        oauth_settings=oauth_settings,
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_valid_token_is_returned_without_refresh(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=10 * 60 * 1000)
    oauth_client = DummyOAuthClient()
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    assert await coordinator.get_valid_access_token() == "tok1"
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_near_expiry_token_is_refreshed_and_persisted(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient()
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    token = await coordinator.get_valid_access_token()

    assert token == "tok2"
    assert oauth_client.calls == ["refresh-1"]
    stored = store.load()
    assert stored is not None
    assert stored.access_token == "tok2"
    assert stored.refresh_token == "refresh-1"
    assert stored.expires_at == NOW + 3_600_000


@pytest.mark.asyncio
async def test_token_exactly_at_buffer_edge_is_refreshed(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=oauth_settings.refresh_buffer_seconds * 1000)
    oauth_client = DummyOAuthClient()
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    assert await coordinator.get_valid_access_token() == "tok2"
    assert len(oauth_client.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_a_single_refresh(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(delay=0.05)
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    first, second = await asyncio.gather(
        coordinator.get_valid_access_token(),
        coordinator.get_valid_access_token(),
    )

    assert first == second == "tok2"
    assert oauth_client.calls == ["refresh-1"]


@pytest.mark.asyncio
async def test_missing_credential_raises_not_authenticated(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    coordinator = _coordinator(store, DummyOAuthClient(), google_settings, oauth_settings)

    with pytest.raises(NotAuthenticatedError):
        await coordinator.get_valid_access_token()


@pytest.mark.asyncio
async def test_rejected_refresh_propagates_and_keeps_credential(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    seeded = _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(
        error=RefreshError("revoked", error_code="invalid_grant", status_code=400)
    )
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    with pytest.raises(RefreshError):
        await coordinator.get_valid_access_token()
    with pytest.raises(RefreshError):
        await coordinator.get_valid_access_token()

    # No automatic retry inside a call; each call tries once.
    assert oauth_client.calls == ["refresh-1", "refresh-1"]
    assert store.load() == seeded


@pytest.mark.asyncio
async def test_invalid_grant_clears_store_when_configured(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
) -> None:
    _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(
        error=RefreshError("revoked", error_code="invalid_grant", status_code=400)
    )
    settings = OAuthSettings(OAUTH_CLEAR_ON_INVALID_GRANT=True)
    coordinator = _coordinator(store, oauth_client, google_settings, settings)

    with pytest.raises(RefreshError):
        await coordinator.get_valid_access_token()

    assert store.load() is None
    with pytest.raises(NotAuthenticatedError):
        await coordinator.get_valid_access_token()


@pytest.mark.asyncio
async def test_transient_refresh_failure_never_clears_store(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
) -> None:
    seeded = _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(error=RefreshError("Token endpoint unreachable"))
    settings = OAuthSettings(OAUTH_CLEAR_ON_INVALID_GRANT=True)
    coordinator = _coordinator(store, oauth_client, google_settings, settings)

    with pytest.raises(RefreshError):
        await coordinator.get_valid_access_token()

    assert store.load() == seeded


@pytest.mark.asyncio
async def test_rotated_refresh_token_is_persisted(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(
        grant=TokenGrant(access_token="tok2", refresh_token="refresh-2", expires_in=3600)
    )
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    await coordinator.get_valid_access_token()

    stored = store.load()
    assert stored is not None
    assert stored.refresh_token == "refresh-2"


@pytest.mark.asyncio
async def test_refresh_without_expiry_is_an_error(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    seeded = _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(grant=TokenGrant(access_token="tok2"))
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    with pytest.raises(RefreshError):
        await coordinator.get_valid_access_token()

    assert store.load() == seeded


@pytest.mark.asyncio
async def test_explicit_refresh_returns_new_token(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=60 * 60 * 1000)
    oauth_client = DummyOAuthClient()
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    assert await coordinator.refresh("refresh-1") == "tok2"
    assert store.load().access_token == "tok2"


@pytest.mark.asyncio
async def test_google_credentials_carry_the_valid_token(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=10_000)
    coordinator = _coordinator(store, DummyOAuthClient(), google_settings, oauth_settings)

    credentials = await coordinator.get_google_credentials()

    assert credentials.token == "tok2"
    assert credentials.refresh_token == "refresh-1"
    assert credentials.client_id == "client"
    assert credentials.token_uri == google_settings.token_url
    assert credentials.expiry == datetime(2023, 11, 14, 23, 13, 20)


class UnclearableStore(SQLiteCredentialStore):
    def clear(self) -> None:
        raise StorageError("database is locked")


class UnreadableStore(SQLiteCredentialStore):
    def load(self):
        raise StorageError("unable to open database file")


class ReloginDuringRefreshClient(DummyOAuthClient):
    """Simulates a fresh login landing while the refresh call is in flight."""

    def __init__(self, store: SQLiteCredentialStore) -> None:
        super().__init__()
        self._store = store

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self._store.save(
            Credential(
                access_token="relogin-access",
                refresh_token="relogin-refresh",
                expires_at=NOW + 3_600_000,
            )
        )
        return await super().refresh_access_token(refresh_token)


@pytest.mark.asyncio
async def test_failed_clear_keeps_the_refresh_error(
    tmp_path,
    cipher,
    google_settings: GoogleSettings,
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = UnclearableStore(str(tmp_path / "credentials.db"), cipher)
    _seed(store, expires_in_ms=10_000)
    oauth_client = DummyOAuthClient(
        error=RefreshError("revoked", error_code="invalid_grant", status_code=400)
    )
    settings = OAuthSettings(OAUTH_CLEAR_ON_INVALID_GRANT=True)
    coordinator = _coordinator(store, oauth_client, google_settings, settings)

    with caplog.at_level("ERROR", logger="dashboard.services.google_tokens"):
        with pytest.raises(RefreshError) as excinfo:
            await coordinator.get_valid_access_token()

    assert excinfo.value.error_code == "invalid_grant"
    assert "Failed to clear stored credential" in caplog.text


@pytest.mark.asyncio
async def test_load_failure_propagates_as_storage_error(
    tmp_path,
    cipher,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    store = UnreadableStore(str(tmp_path / "credentials.db"), cipher)
    oauth_client = DummyOAuthClient()
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    with pytest.raises(StorageError):
        await coordinator.get_valid_access_token()

    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_refresh_replaced_by_new_login_is_not_returned(
    store: SQLiteCredentialStore,
    google_settings: GoogleSettings,
    oauth_settings: OAuthSettings,
) -> None:
    _seed(store, expires_in_ms=10_000)
    oauth_client = ReloginDuringRefreshClient(store)
    coordinator = _coordinator(store, oauth_client, google_settings, oauth_settings)

    with pytest.raises(StorageError):
        await coordinator.get_valid_access_token()

    assert oauth_client.calls == ["refresh-1"]
    # The lock was released and the new login is what callers now get.
    assert await coordinator.get_valid_access_token() == "relogin-access"
    assert store.load().refresh_token == "relogin-refresh"
