"""Encryption and lookup digests for tokens kept in the credential store."""

from __future__ import annotations

import base64
import hashlib
import hmac

from cryptography.fernet import Fernet, InvalidToken

_ENCRYPTION_LABEL = b"dashboard/credential-encryption"
_DIGEST_LABEL = b"dashboard/refresh-token-digest"


def _derive(secret: bytes, label: bytes) -> bytes:
    return hmac.new(secret, label, hashlib.sha256).digest()


class TokenCipherService:
    """Protects stored Google tokens with keys derived from one secret.

    Tokens are encrypted with Fernet. Refresh tokens additionally get a keyed
    digest so the store can find the row a refresh belongs to without
    decrypting it, and without the digest being checkable by anyone who only
    holds the database file.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        raw = secret.encode("utf-8")
        self._fernet = Fernet(base64.urlsafe_b64encode(_derive(raw, _ENCRYPTION_LABEL)))
        self._digest_key = _derive(raw, _DIGEST_LABEL)

    def encrypt(self, token: str) -> str:
        return self._fernet.encrypt(token.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Return the stored token, or raise ``ValueError`` if another key wrote it."""
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise ValueError("Stored token was not encrypted with this secret.") from exc

    def fingerprint(self, token: str) -> str:
        return hmac.new(self._digest_key, token.encode("utf-8"), hashlib.sha256).hexdigest()


__all__ = ["TokenCipherService"]
