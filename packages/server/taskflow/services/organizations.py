"""
Organization service: creation, lookup and contact updates.
"""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskflow.core.errors import NotFoundError
from taskflow.models.organization import Organization
from taskflow.models.user import User
from taskflow.services import memberships
from taskflow_shared.schemas.common import Role
from taskflow_shared.schemas.organizations import OrgUpdateRequest

log = structlog.get_logger()

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    slug = _SLUG_STRIP.sub("-", name.lower()).strip("-")
    return slug[:48] or "org"


async def _unique_slug(name: str, session: AsyncSession) -> str:
    base = slugify(name)
    slug = base
    while True:
        existing = await session.execute(
            select(Organization.id).where(Organization.slug == slug)
        )
        if existing.scalar_one_or_none() is None:
            return slug
        slug = f"{base}-{secrets.token_hex(3)}"


async def create_org(
    name: str,
    owner: User,
    session: AsyncSession,
    *,
    email: Optional[str] = None,
    address: Optional[str] = None,
) -> Organization:
    """Create an org and make the owner its admin."""
    org = Organization(
        name=name.strip(),
        slug=await _unique_slug(name, session),
        email=email,
        address=address,
        owner_id=owner.id,
    )
    session.add(org)
    await session.flush()

    await memberships.join(owner.id, org.id, Role.ADMIN, session)

    log.info("org.created", org_id=str(org.id), slug=org.slug, owner=str(owner.id))
    return org


async def initialize_workspace(user: User, session: AsyncSession) -> Organization:
    """Create a default workspace for a user who finished onboarding without one."""
    name = f"{user.first_name or user.email.split('@')[0]}'s Workspace"
    return await create_org(name, user, session)


async def get_org(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    result = await session.execute(select(Organization).where(Organization.id == org_id))
    org = result.scalar_one_or_none()
    if not org:
        raise NotFoundError("Organization not found")
    return org


async def update_org(
    org: Organization,
    req: OrgUpdateRequest,
    session: AsyncSession,
) -> Organization:
    """Update org name and/or contact fields."""
    if req.name is not None:
        org.name = req.name.strip()
    if req.email is not None:
        org.email = req.email
    if req.address is not None:
        org.address = req.address

    org.updated_at = datetime.now(timezone.utc)
    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=str(org.id))
    return org
