"""
Authentication endpoints.

- Email/Password registration & login
- JWT session management (refresh, logout)
- Current user
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    AuthenticatedUser,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    get_authenticated_user,
    revoke_jwt,
)
from taskflow.core.config import get_settings
from taskflow.core.database import get_session
from taskflow.core.errors import ERROR_RESPONSES
from taskflow.core.rate_limit import auth_rate_limit
from taskflow.models.user import User
from taskflow.services import onboarding as onboarding_service
from taskflow.services import users as user_service
from taskflow_shared.schemas.users import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserRead,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter(responses=ERROR_RESPONSES)

# Cookie config
COOKIE_KWARGS = {
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _start_session(response: Response, user: User) -> str:
    """Issue a JWT and set the session and CSRF cookies. Returns the JWT."""
    token, _jti = create_jwt(user.id)
    response.set_cookie(key=SESSION_COOKIE, value=token, httponly=True, **COOKIE_KWARGS)
    # JS must read the CSRF cookie to echo it in X-CSRF-Token
    response.set_cookie(
        key=CSRF_COOKIE, value=generate_csrf_token(), httponly=False, **COOKIE_KWARGS
    )
    return token


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=201,
    dependencies=[Depends(auth_rate_limit)],
)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register with email/password.

    Pending invitations for the email are accepted on the spot, in which case
    the user skips onboarding.
    """
    user, accepted = await onboarding_service.register(
        body.email, body.password, body.first_name, body.last_name, session
    )
    token = _start_session(response, user)
    return AuthResponse(
        user=UserRead.model_validate(user),
        message="Registration successful",
        accepted_invitations=accepted,
        access_token=token,
    )


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    user = await user_service.authenticate(body.email, body.password, session)
    token = _start_session(response, user)
    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(
        user=UserRead.model_validate(user),
        message="Login successful",
        access_token=token,
    )


@router.post("/refresh", response_model=AuthResponse)
async def refresh_session(
    response: Response,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
):
    """Issue a new token and revoke the current one."""
    token = _start_session(response, auth.user)
    if auth.jti:
        await revoke_jwt(auth.jti)
    return AuthResponse(
        user=UserRead.model_validate(auth.user),
        message="Session refreshed",
        access_token=token,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    authorization = request.headers.get("Authorization", "")
    token = authorization[7:].strip() if authorization.startswith("Bearer ") else None
    token = token or request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            jti = decode_jwt(token).get("jti")
        except jwt.PyJWTError:
            jti = None  # already invalid, just clear cookies
        if jti:
            await revoke_jwt(jti)

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return MessageResponse(message="Logged out")


@router.get("/user", response_model=UserRead)
async def current_user(auth: AuthenticatedUser = Depends(get_authenticated_user)):
    return UserRead.model_validate(auth.user)
