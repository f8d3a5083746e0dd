"""
User service: account creation and credential checks.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskflow.core.auth import hash_password, verify_password
from taskflow.core.errors import (
    AuthenticationError,
    ConflictError,
    OnboardingOrderError,
    ValidationError,
)
from taskflow.models.user import User
from taskflow_shared.schemas.common import (
    OnboardingStep,
    normalize_email,
    validate_step_transition,
)

log = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8


async def get_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_by_id(user_id: uuid.UUID, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    session: AsyncSession,
) -> User:
    """Create a user in the initial onboarding step."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    email = normalize_email(email)
    if await get_by_email(email, session):
        raise ConflictError("An account with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("An account with this email already exists")

    log.info("user.created", user_id=str(user.id))
    return user


async def authenticate(email: str, password: str, session: AsyncSession) -> User:
    """Return the user for valid credentials. Raises AuthenticationError otherwise."""
    user = await get_by_email(email, session)
    if not user or not user.password_hash or not verify_password(password, user.password_hash):
        log.warning("auth.login_failed")
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    return user


async def advance_step(
    user: User,
    target: OnboardingStep,
    session: AsyncSession,
    *,
    auto_skip: bool = False,
) -> User:
    """Move the user forward in onboarding. Raises OnboardingOrderError otherwise."""
    current = OnboardingStep(user.onboarding_step)
    ok, message = validate_step_transition(current, target, auto_skip=auto_skip)
    if not ok:
        raise OnboardingOrderError(message)

    user.onboarding_step = target.value
    session.add(user)
    await session.flush()
    log.info(
        "onboarding.step_changed",
        user_id=str(user.id),
        from_step=current.value,
        to_step=target.value,
        auto_skip=auto_skip,
    )
    return user
