"""SQLite-backed persistence for the single stored credential set."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dashboard.core.errors import StorageError
from dashboard.models.credential import Credential
from dashboard.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

# The CHECK constraint pins the table to one row; writes upsert that row.
_SCHEMA = """
CREATE TABLE IF NOT EXISTS auth_tokens (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    access_token TEXT NOT NULL,
    refresh_token TEXT NOT NULL,
    refresh_token_digest TEXT NOT NULL,
    expires_at INTEGER NOT NULL,
    created_at TEXT NOT NULL
)
"""


class SQLiteCredentialStore:
    """Stores at most one credential, encrypting both tokens at rest."""

    def __init__(self, db_path: str, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(_SCHEMA)
        except sqlite3.Error as exc:
            logger.exception("Unable to initialise credential store at %s", self._db_path)
            raise StorageError("Credential store could not be initialised.") from exc

    def save(self, credential: Credential) -> None:
        """Replace whatever credential is stored with ``credential``."""
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO auth_tokens (
                        id, access_token, refresh_token, refresh_token_digest,
                        expires_at, created_at
                    )
                    VALUES (1, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        access_token = excluded.access_token,
                        refresh_token = excluded.refresh_token,
                        refresh_token_digest = excluded.refresh_token_digest,
                        expires_at = excluded.expires_at,
                        created_at = excluded.created_at
                    """,
                    (
                        self._cipher.encrypt(credential.access_token),
                        self._cipher.encrypt(credential.refresh_token),
                        self._cipher.fingerprint(credential.refresh_token),
                        int(credential.expires_at),
                        _as_utc(credential.created_at).isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            logger.exception("Failed to persist credential")
            raise StorageError("Failed to persist credential.") from exc

    def load(self) -> Optional[Credential]:
        """Return the stored credential, or ``None`` if nobody has logged in yet."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT access_token, refresh_token, expires_at, created_at
                    FROM auth_tokens WHERE id = 1
                    """
                ).fetchone()
        except sqlite3.Error as exc:
            logger.exception("Failed to read stored credential")
            raise StorageError("Failed to read stored credential.") from exc

        if not row:
            return None

        try:
            access_token = self._cipher.decrypt(row["access_token"])
            refresh_token = self._cipher.decrypt(row["refresh_token"])
        except ValueError as exc:
            logger.exception("Stored credential could not be decrypted")
            raise StorageError(
                "Stored credential could not be decrypted; re-authentication required."
            ) from exc

        return Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=row["expires_at"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def update_after_refresh(
        self,
        refresh_token: str,
        *,
        access_token: str,
        expires_at: int,
        rotated_refresh_token: Optional[str] = None,
        refreshed_at: Optional[datetime] = None,
    ) -> None:
        """
        Overwrite the access token and expiry of the row holding ``refresh_token``.

        The refresh token is kept unless the provider rotated it, in which case
        ``rotated_refresh_token`` replaces it.
        """
        next_refresh_token = rotated_refresh_token or refresh_token
        written_at = _as_utc(refreshed_at or datetime.now(timezone.utc))
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    UPDATE auth_tokens
                    SET access_token = ?,
                        refresh_token = ?,
                        refresh_token_digest = ?,
                        expires_at = ?,
                        created_at = ?
                    WHERE id = 1 AND refresh_token_digest = ?
                    """,
                    (
                        self._cipher.encrypt(access_token),
                        self._cipher.encrypt(next_refresh_token),
                        self._cipher.fingerprint(next_refresh_token),
                        int(expires_at),
                        written_at.isoformat(),
                        self._cipher.fingerprint(refresh_token),
                    ),
                )
                updated = cursor.rowcount
        except sqlite3.Error as exc:
            logger.exception("Failed to persist refreshed credential")
            raise StorageError("Failed to persist refreshed credential.") from exc

        if updated == 0:
            raise StorageError("No stored credential matches the refreshed token.")

    def clear(self) -> None:
        """Remove the stored credential, forcing a new login."""
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM auth_tokens")
        except sqlite3.Error as exc:
            logger.exception("Failed to clear stored credential")
            raise StorageError("Failed to clear stored credential.") from exc


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["SQLiteCredentialStore"]
