"""Service layer exports."""

from .auth_gate import AuthCheck, AuthenticationGate, AuthStatus
from .authorization import AuthorizationFlow
from .google_tokens import RefreshCoordinator
from .token_cipher import TokenCipherService
from .token_validator import REFRESH_BUFFER_MS, is_still_valid

__all__ = [
    "AuthCheck",
    "AuthStatus",
    "AuthenticationGate",
    "AuthorizationFlow",
    "REFRESH_BUFFER_MS",
    "RefreshCoordinator",
    "TokenCipherService",
    "is_still_valid",
]
