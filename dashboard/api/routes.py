"""
FastAPI routes for the Google login handshake and credential status.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from dashboard.core.errors import AuthExchangeError, NotAuthenticatedError, RateLimitExceeded
from dashboard.dependencies import (
    get_app_settings,
    get_auth_rate_limiter,
    get_authentication_gate,
    get_authorization_flow,
    get_refresh_coordinator,
)
from dashboard.schemas import (
    AuthStatusResponse,
    AuthorizationUrlResponse,
    OAuthCallbackResult,
    SessionResponse,
)
from dashboard.services import AuthStatus
from dashboard.utils.clock import now_ms

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def require_authentication(
    gate: Annotated[Any, Depends(get_authentication_gate)],
    flow: Annotated[Any, Depends(get_authorization_flow)],
) -> None:
    """Dependency for routes that need a stored Google credential."""
    if not gate.is_authenticated():
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail={
                "error": "Not authenticated",
                "login_url": flow.build_consent_url(),
                "message": "Please visit the login URL to authenticate with Google",
            },
        )


def limit_auth_attempts(
    request: Request,
    limiter: Annotated[Any, Depends(get_auth_rate_limiter)],
) -> None:
    """Dependency throttling login handshake attempts per client IP."""
    client_ip = request.client.host if request.client else "unknown"
    if not limiter.acquire(client_ip):
        raise RateLimitExceeded(limiter.retry_after(client_ip))


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get(
    "/auth/google/login",
    status_code=HTTPStatus.OK,
    dependencies=[Depends(limit_auth_attempts)],
)
async def start_google_login(
    request: Request,
    flow: Annotated[Any, Depends(get_authorization_flow)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
) -> Response:
    """Start the OAuth flow by sending the user to the Google consent screen."""
    authorization_url = flow.build_consent_url()

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(
        content=AuthorizationUrlResponse(authorization_url=authorization_url).model_dump()
    )


@router.get(
    "/auth/google/callback",
    status_code=HTTPStatus.OK,
    dependencies=[Depends(limit_auth_attempts)],
)
async def handle_google_callback(
    request: Request,
    flow: Annotated[Any, Depends(get_authorization_flow)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None, description="Authorization code from Google."),
    state: Optional[str] = Query(default=None, description="OAuth state token."),
    error: Optional[str] = Query(
        default=None, description="Error code when the user denied consent."
    ),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    """Complete the OAuth exchange and store the resulting credential."""
    if error:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"error": error, "message": "Authentication failed. Please try again."},
        )
    if not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={
                "error": "Missing authorization code",
                "message": "No code received from Google",
            },
        )
    if not state:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"error": "Missing state", "message": "No state received from Google"},
        )

    try:
        flow.verify_state(state)
        credential = await flow.exchange_code(code)
    except AuthExchangeError as exc:
        logger.warning("OAuth callback failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"error": "Authentication failed", "details": str(exc)},
        ) from exc

    result = OAuthCallbackResult(
        message=(
            "Authentication successful! Your dashboard is now connected to "
            "Google Calendar and Tasks."
        ),
        expires_at=credential.expires_at,
    )

    redirect_target = settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(content=result.model_dump())


@router.get("/auth/status")
async def auth_status(
    gate: Annotated[Any, Depends(get_authentication_gate)],
    flow: Annotated[Any, Depends(get_authorization_flow)],
) -> JSONResponse:
    """Report whether a credential is stored, with a login URL when it is not."""
    check = gate.check()
    if check.authenticated:
        body = AuthStatusResponse(authenticated=True, message="You are authenticated")
        return JSONResponse(content=body.model_dump(exclude_none=True))

    message = "Not authenticated. Please log in."
    if check.status is AuthStatus.ERROR:
        message = "Stored credential is unavailable. Please log in again."
    body = AuthStatusResponse(
        authenticated=False, message=message, login_url=flow.build_consent_url()
    )
    return JSONResponse(status_code=HTTPStatus.UNAUTHORIZED, content=body.model_dump())


@router.get(
    "/auth/session",
    response_model=SessionResponse,
    dependencies=[Depends(require_authentication)],
)
async def auth_session(
    coordinator: Annotated[Any, Depends(get_refresh_coordinator)],
    flow: Annotated[Any, Depends(get_authorization_flow)],
) -> SessionResponse:
    """Make sure the stored access token is usable, refreshing it if needed."""
    try:
        credential = await coordinator.get_valid_credential()
    except NotAuthenticatedError as exc:
        raise NotAuthenticatedError(str(exc), login_url=flow.build_consent_url()) from exc

    return SessionResponse(
        expires_at=credential.expires_at,
        expires_in_seconds=max(0, (credential.expires_at - now_ms()) // 1000),
    )


__all__ = ["limit_auth_attempts", "require_authentication", "router"]
