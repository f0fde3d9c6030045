"""Authentication gate consulted by request routing."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from dashboard.clients import SQLiteCredentialStore

logger = logging.getLogger(__name__)


class AuthStatus(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    NOT_AUTHENTICATED = "not_authenticated"
    ERROR = "error"


@dataclass(slots=True)
class AuthCheck:
    """Outcome of a gate check, keeping the failure when there was one."""

    status: AuthStatus
    error: Optional[Exception] = None

    @property
    def authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED


class AuthenticationGate:
    """Answers whether a credential is stored, without ever raising."""

    def __init__(self, store: "SQLiteCredentialStore") -> None:
        self._store = store

    def check(self) -> AuthCheck:
        try:
            credential = self._store.load()
        except Exception as exc:
            logger.exception("Authentication check failed")
            return AuthCheck(status=AuthStatus.ERROR, error=exc)
        if credential is None:
            return AuthCheck(status=AuthStatus.NOT_AUTHENTICATED)
        return AuthCheck(status=AuthStatus.AUTHENTICATED)

    def is_authenticated(self) -> bool:
        """Boolean projection of :meth:`check`; errors count as not authenticated."""
        return self.check().authenticated


__all__ = ["AuthCheck", "AuthStatus", "AuthenticationGate"]
