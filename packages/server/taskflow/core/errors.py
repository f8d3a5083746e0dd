"""
Domain error taxonomy and the handlers that render it.

Services raise these; `register_exception_handlers` translates them into the
`{"error": {"code", "message", "status"}}` envelope at the request boundary.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from taskflow_shared.schemas.common import ErrorResponse

log = structlog.get_logger()


class TaskFlowError(Exception):
    """Base class for errors that are surfaced to API callers."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(self, message: str, *, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "status": self.status_code}


class ValidationError(TaskFlowError):
    status_code = 422
    code = "VALIDATION_ERROR"


class InvalidRole(ValidationError):
    code = "INVALID_ROLE"


class AuthenticationError(TaskFlowError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"


class AuthorizationError(TaskFlowError):
    """Role check failure. The message never says which role was missing."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden", **kwargs):
        super().__init__("Forbidden", **kwargs)
        self.reason = message


class NotFoundError(TaskFlowError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidOrExpiredToken(NotFoundError):
    code = "INVALID_OR_EXPIRED_TOKEN"

    def __init__(self, message: str = "Invitation not found, expired, or already used"):
        super().__init__(message)


class ConflictError(TaskFlowError):
    status_code = 409
    code = "CONFLICT"


class AlreadyMember(ConflictError):
    code = "ALREADY_MEMBER"

    def __init__(self, message: str = "User is already a member of this organization"):
        super().__init__(message)


class InvitationConsumed(ConflictError):
    code = "INVITATION_CONSUMED"

    def __init__(self, message: str = "Invitation has already been used"):
        super().__init__(message)


class OnboardingOrderError(ConflictError):
    code = "ONBOARDING_ORDER"


class RateLimitError(TaskFlowError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retry_after"] = self.retry_after
        return body


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _handle_taskflow_error(request: Request, exc: TaskFlowError) -> JSONResponse:
    if isinstance(exc, AuthorizationError):
        log.warning("request.forbidden", path=request.url.path, reason=exc.reason)
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()},
        headers=headers,
    )


INTERNAL_ERROR_BODY = {
    "error": {
        "code": "INTERNAL_ERROR",
        "message": "An internal error occurred.",
        "status": 500,
    }
}


async def _handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.error("request.database_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)


# OpenAPI documentation for the envelope, attached to every API router.
ERROR_RESPONSES: dict = {
    status: {"model": ErrorResponse} for status in (401, 403, 404, 409, 429, 500)
}


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskFlowError, _handle_taskflow_error)
    app.add_exception_handler(SQLAlchemyError, _handle_database_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
