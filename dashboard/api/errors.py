"""Translate credential lifecycle errors into HTTP responses."""

from __future__ import annotations

import logging
import math
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dashboard.core.errors import (
    AuthExchangeError,
    NotAuthenticatedError,
    RateLimitExceeded,
    RefreshError,
    StorageError,
)

logger = logging.getLogger(__name__)


async def _not_authenticated(request: Request, exc: NotAuthenticatedError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.UNAUTHORIZED,
        content={
            "error": "Not authenticated",
            "message": str(exc),
            "login_url": exc.login_url,
        },
    )


async def _refresh_failed(request: Request, exc: RefreshError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.UNAUTHORIZED,
        content={
            "error": "Token refresh failed",
            "error_code": exc.error_code,
            "message": "Google rejected the stored credential. Please log in again.",
        },
    )


async def _exchange_failed(request: Request, exc: AuthExchangeError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST,
        content={"error": "Authentication failed", "details": str(exc)},
    )


async def _storage_failed(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Credential storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        content={"error": "Credential storage unavailable", "details": str(exc)},
    )


async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = max(1, math.ceil(exc.retry_after))
    return JSONResponse(
        status_code=HTTPStatus.TOO_MANY_REQUESTS,
        content={
            "error": "Too many authentication attempts",
            "message": "Please try again later",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach handlers for every credential error kind to ``app``."""
    app.add_exception_handler(NotAuthenticatedError, _not_authenticated)
    app.add_exception_handler(RefreshError, _refresh_failed)
    app.add_exception_handler(AuthExchangeError, _exchange_failed)
    app.add_exception_handler(StorageError, _storage_failed)
    app.add_exception_handler(RateLimitExceeded, _rate_limited)


__all__ = ["register_exception_handlers"]
