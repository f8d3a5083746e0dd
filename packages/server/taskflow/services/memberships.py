"""
Membership registry: who belongs to which organization, and with what role.

The (user_id, org_id) primary key makes the store itself reject a second
membership for the same pair.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskflow.core.errors import (
    AlreadyMember,
    AuthorizationError,
    ConflictError,
    InvalidRole,
    NotFoundError,
)
from taskflow.models.membership import Membership
from taskflow.models.organization import Organization
from taskflow.models.user import User
from taskflow_shared.schemas.common import Role, normalize_role

log = structlog.get_logger()


def coerce_role(raw: object) -> Role:
    """normalize_role, surfaced as a validation error."""
    try:
        return normalize_role(raw)
    except ValueError as exc:
        raise InvalidRole(str(exc))


async def get_membership(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> Optional[Membership]:
    result = await session.execute(
        select(Membership).where(
            Membership.user_id == user_id, Membership.org_id == org_id
        )
    )
    return result.scalar_one_or_none()


async def join(
    user_id: uuid.UUID,
    org_id: uuid.UUID,
    role: Role | str,
    session: AsyncSession,
) -> Membership:
    """Add a user to an org. Raises AlreadyMember if the pair exists."""
    role = coerce_role(role)
    if await get_membership(user_id, org_id, session):
        raise AlreadyMember()

    membership = Membership(user_id=user_id, org_id=org_id, role=role.value)
    session.add(membership)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent join for the same pair.
        raise AlreadyMember()

    log.info("membership.joined", user_id=str(user_id), org_id=str(org_id), role=role.value)
    return membership


async def authorize(
    user_id: uuid.UUID,
    org_id: uuid.UUID,
    required_roles: Iterable[Role | str],
    session: AsyncSession,
) -> bool:
    """True when the user's role in the org is one of `required_roles`.

    No membership means no privilege.
    """
    membership = await get_membership(user_id, org_id, session)
    if membership is None:
        return False
    allowed = {coerce_role(r) for r in required_roles}
    return Role(membership.role) in allowed


async def require_role(
    user_id: uuid.UUID,
    org_id: uuid.UUID,
    required_roles: Iterable[Role | str],
    session: AsyncSession,
) -> None:
    if not await authorize(user_id, org_id, required_roles, session):
        raise AuthorizationError(f"user {user_id} lacks required role in org {org_id}")


async def is_admin_anywhere(user_id: uuid.UUID, session: AsyncSession) -> bool:
    result = await session.execute(
        select(func.count())
        .select_from(Membership)
        .where(Membership.user_id == user_id, Membership.role == Role.ADMIN.value)
    )
    return result.scalar_one() > 0


async def list_user_orgs(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List all orgs a user belongs to, with their role."""
    result = await session.execute(
        select(Organization, Membership.role)
        .join(Membership, Membership.org_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.joined_at)
    )
    return [
        {"id": org.id, "name": org.name, "slug": org.slug, "role": role}
        for org, role in result.all()
    ]


async def list_members(org_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(User, Membership)
        .join(Membership, Membership.user_id == User.id)
        .where(Membership.org_id == org_id)
        .order_by(Membership.joined_at)
    )
    return [
        {
            "user_id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "role": m.role,
            "joined_at": m.joined_at,
        }
        for user, m in result.all()
    ]


async def _count_admins(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Membership)
        .where(Membership.org_id == org_id, Membership.role == Role.ADMIN.value)
    )
    return result.scalar_one()


async def change_role(
    org_id: uuid.UUID,
    target_user_id: uuid.UUID,
    role: Role | str,
    session: AsyncSession,
) -> Membership:
    """Change a member's role. Callers must already be authorized as admin."""
    new_role = coerce_role(role)
    membership = await get_membership(target_user_id, org_id, session)
    if membership is None:
        raise NotFoundError("User not found in this organization")

    if (
        membership.role == Role.ADMIN.value
        and new_role != Role.ADMIN
        and await _count_admins(org_id, session) <= 1
    ):
        raise ConflictError("Cannot demote the last admin of an organization")

    membership.role = new_role.value
    session.add(membership)
    await session.flush()
    log.info(
        "membership.role_changed",
        user_id=str(target_user_id),
        org_id=str(org_id),
        role=new_role.value,
    )
    return membership


async def remove_member(
    org_id: uuid.UUID, target_user_id: uuid.UUID, session: AsyncSession
) -> None:
    """Remove a user from the org. Immediately revokes access."""
    membership = await get_membership(target_user_id, org_id, session)
    if membership is None:
        raise NotFoundError("User not found in this organization")

    if membership.role == Role.ADMIN.value and await _count_admins(org_id, session) <= 1:
        raise ConflictError("Cannot remove the last admin of an organization")

    await session.delete(membership)
    await session.flush()
    log.info("membership.removed", user_id=str(target_user_id), org_id=str(org_id))
