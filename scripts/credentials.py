"""Inspect or clear the stored Google credential.

Clearing forces the next request to go through the login flow again, which is
the way out when Google keeps rejecting the stored refresh token.

Example usages::

    python -m scripts.credentials status
    python -m scripts.credentials clear --db-path ./data/dashboard.db
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from pydantic import ValidationError

from dashboard.clients import SQLiteCredentialStore
from dashboard.core.config import AppSettings
from dashboard.core.errors import StorageError
from dashboard.services import TokenCipherService
from dashboard.utils.clock import from_epoch_ms, now_ms

EXIT_OK = 0
EXIT_NOT_AUTHENTICATED = 1
EXIT_VALIDATION_ERROR = 2
EXIT_STORAGE_ERROR = 4


def _build_store(settings: AppSettings, db_path: Optional[str]) -> SQLiteCredentialStore:
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return SQLiteCredentialStore(
        db_path or settings.credential_db_path, TokenCipherService(secret=secret)
    )


def _status(store: SQLiteCredentialStore) -> int:
    credential = store.load()
    if credential is None:
        print("No credential stored; log in through /api/auth/google/login.")
        return EXIT_NOT_AUTHENTICATED

    remaining = (credential.expires_at - now_ms()) // 1000
    state = "valid" if remaining > 0 else "expired"
    print(
        f"Credential stored (last written {credential.created_at.isoformat()}).\n"
        f"  access token {state}; expires {from_epoch_ms(credential.expires_at).isoformat()}"
    )
    return EXIT_OK


def _clear(store: SQLiteCredentialStore) -> int:
    store.clear()
    print("Stored credential removed; the next request will require a new login.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the stored Google credential.")
    parser.add_argument(
        "--db-path",
        default=None,
        help="Credential database (default: CREDENTIAL_DB_PATH from settings).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("status", help="Show whether a credential is stored.")
    subparsers.add_parser("clear", help="Delete the stored credential.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = AppSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    try:
        store = _build_store(settings, args.db_path)
        if args.command == "clear":
            return _clear(store)
        return _status(store)
    except StorageError as exc:
        print(f"Credential store error: {exc}", file=sys.stderr)
        return EXIT_STORAGE_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
