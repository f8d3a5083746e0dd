"""
Authentication and Authorization for TaskFlow Pro.

Supports:
- Email/Password login with bcrypt hashes
- JWT session tokens (cookie or Bearer header) with Redis revocation list
- Request-scoped AuthenticatedUser passed explicitly into services
- Org-scoped role dependencies built on the membership registry
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskflow.core.config import get_settings
from taskflow.core.database import get_session
from taskflow.core.errors import AuthenticationError, AuthorizationError, NotFoundError
from taskflow.core.redis import get_redis
from taskflow.models.membership import Membership
from taskflow.models.organization import Organization
from taskflow.models.user import User
from taskflow_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "tf_session"
CSRF_COOKIE = "tf_csrf"

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int | None = None) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    ttl = ttl_seconds or settings.jwt_expire_minutes * 60
    await redis.setex(f"jwt:revoked:{jti}", ttl, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF Token
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Request-scoped identity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthenticatedUser:
    """The authenticated caller, plus their membership when the route is org-scoped."""

    user: User
    jti: Optional[str] = None
    org: Optional[Organization] = None
    membership: Optional[Membership] = None

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id

    @property
    def org_id(self) -> Optional[uuid.UUID]:
        return self.org.id if self.org else None

    @property
    def role(self) -> Optional[Role]:
        return Role(self.membership.role) if self.membership else None


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


async def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency. Bearer header first, then session cookie."""
    token = _extract_token(request, authorization)
    if not token:
        raise AuthenticationError("Authentication required")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise AuthenticationError("Session has been revoked")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid or expired session")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User not found")

    auth = AuthenticatedUser(user=user, jti=jti)
    request.state.auth = auth
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return auth


async def get_org_member(
    org_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Resolve the org in the path and the caller's membership in it.

    Non-members get 404 so org existence is not disclosed.
    """
    result = await session.execute(
        select(Organization, Membership)
        .join(Membership, Membership.org_id == Organization.id)
        .where(Organization.id == org_id, Membership.user_id == auth.user_id)
    )
    row = result.one_or_none()
    if not row:
        raise NotFoundError("Organization not found")
    org, membership = row
    return AuthenticatedUser(user=auth.user, jti=auth.jti, org=org, membership=membership)


def role_names(roles: Iterable[Role]) -> list[str]:
    return sorted(r.value for r in roles)


def require_roles(*roles: Role):
    """Build a dependency that admits org members holding one of `roles`."""
    allowed = frozenset(roles)

    async def _dependency(
        auth: AuthenticatedUser = Depends(get_org_member),
    ) -> AuthenticatedUser:
        if auth.role not in allowed:
            current = auth.role.value if auth.role else None
            raise AuthorizationError(f"role {current} not in {role_names(allowed)}")
        return auth

    return _dependency


require_member = require_roles(Role.ADMIN, Role.TEAM_LEAD, Role.MEMBER)
require_inviter = require_roles(Role.ADMIN, Role.TEAM_LEAD)
require_admin = require_roles(Role.ADMIN)
