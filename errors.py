"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors raised by the auth core. Each
subclass carries the HTTP status and stable error code any transport layer
maps it to; the global exception handler converts AppError subclasses to
consistent JSON responses.

Non-AppError exceptions (store unavailable, bugs) are logged with full detail
and surfaced as an opaque 500 without internal detail.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class SameAsCurrentError(ValidationError):
    error_code = "same_as_current"


class MfaStateError(AppError):
    """MFA operation not valid in the user's current MFA state."""

    status_code = 400
    error_code = "mfa_state_error"


class InvalidOrExpiredTokenError(AppError):
    status_code = 400
    error_code = "invalid_or_expired_token"


class InvalidTokenError(InvalidOrExpiredTokenError):
    """A signed token failed signature, expiry, kind or revocation checks."""

    status_code = 401
    error_code = "invalid_token"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class InvalidCredentialError(AuthenticationError):
    error_code = "invalid_credentials"


class InvalidMfaCodeError(AuthenticationError):
    error_code = "invalid_mfa_code"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class AccountLockedError(ForbiddenError):
    error_code = "account_locked"


class EmailNotVerifiedError(ForbiddenError):
    error_code = "email_not_verified"


class AccountDisabledError(ForbiddenError):
    error_code = "account_disabled"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class AlreadyExistsError(ConflictError):
    error_code = "already_exists"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class TooManyAttemptsError(RateLimitError):
    error_code = "too_many_attempts"


class NotificationFailure(Exception):
    """Raised by notifiers; always caught and logged, never surfaced."""


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
