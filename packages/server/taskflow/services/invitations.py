"""
Invitation ledger.

A row's presence means the invitation is pending. Accepting or revoking
deletes it, and the DELETE is what makes a token single-use: whichever
transaction removes the row gets to create the membership, everyone else sees
zero affected rows and backs off.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskflow.core.config import get_settings
from taskflow.core.errors import (
    AlreadyMember,
    AuthorizationError,
    ConflictError,
    InvalidOrExpiredToken,
    InvitationConsumed,
    NotFoundError,
)
from taskflow.models.base import utcnow
from taskflow.models.invitation import Invitation, generate_invitation_token
from taskflow.models.membership import Membership
from taskflow.models.organization import Organization
from taskflow.models.user import User
from taskflow.services import memberships, notifications, users
from taskflow_shared.schemas.common import (
    INVITER_ROLES,
    NotificationType,
    OnboardingStep,
    Role,
    normalize_email,
)

log = structlog.get_logger()
settings = get_settings()


def accept_url(token: str) -> str:
    return f"{settings.app_url.rstrip('/')}/invitations/{token}"


async def find_by_token(token: str, session: AsyncSession) -> Optional[Invitation]:
    """The pending invitation for `token`, or None if unknown or expired."""
    result = await session.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None or invitation.is_expired:
        return None
    return invitation


async def _find_for_email(
    org_id: uuid.UUID, email: str, session: AsyncSession
) -> Optional[Invitation]:
    result = await session.execute(
        select(Invitation).where(Invitation.org_id == org_id, Invitation.email == email)
    )
    return result.scalar_one_or_none()


async def _delete(invitation_id: uuid.UUID, session: AsyncSession) -> bool:
    """Delete one invitation row. False when another transaction got there first."""
    result = await session.execute(
        delete(Invitation)
        .where(Invitation.id == invitation_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def invite(
    org_id: uuid.UUID,
    email: str,
    role: Role | str,
    invited_by: uuid.UUID,
    session: AsyncSession,
) -> tuple[Invitation, bool]:
    """Invite an email address into an org.

    Re-inviting an address that already has a pending invitation refreshes
    that row (new token, role, expiry and inviter) instead of adding another.

    Returns (invitation, created); created is False for a refresh.
    """
    await memberships.require_role(invited_by, org_id, INVITER_ROLES, session)
    role = memberships.coerce_role(role)
    email = normalize_email(email)

    invitee = await users.get_by_email(email, session)
    if invitee and await memberships.get_membership(invitee.id, org_id, session):
        raise AlreadyMember()

    expires_at = Invitation.expiry_from_now(settings.invitation_expire_days)
    invitation = await _find_for_email(org_id, email, session)
    created = invitation is None

    if invitation is None:
        invitation = Invitation(
            org_id=org_id,
            email=email,
            role=role.value,
            invited_by=invited_by,
            expires_at=expires_at,
        )
    else:
        invitation.token = generate_invitation_token()
        invitation.role = role.value
        invitation.invited_by = invited_by
        invitation.expires_at = expires_at

    session.add(invitation)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("An invitation for this email is already being created")

    if invitee:
        org = await session.get(Organization, org_id)
        await notifications.notify(
            invitee.id,
            NotificationType.INVITATION_RECEIVED,
            "New invitation",
            f"You have been invited to join {org.name}",
            session,
            related_org_id=org_id,
        )

    log.info(
        "invitation.created" if created else "invitation.refreshed",
        invitation_id=str(invitation.id),
        org_id=str(org_id),
        role=role.value,
        invited_by=str(invited_by),
    )
    return invitation, created


async def _notify_joined(
    user: User, org_id: uuid.UUID, inviter_id: uuid.UUID, session: AsyncSession
) -> None:
    org = await session.get(Organization, org_id)
    await notifications.notify(
        user.id,
        NotificationType.ADDED_TO_ORGANIZATION,
        "Welcome aboard",
        f"You are now a member of {org.name}",
        session,
        related_org_id=org_id,
    )
    if inviter_id != user.id:
        await notifications.notify(
            inviter_id,
            NotificationType.INVITATION_ACCEPTED,
            "Invitation accepted",
            f"{user.display_name} joined {org.name}",
            session,
            related_org_id=org_id,
        )


async def accept(token: str, user: User, session: AsyncSession) -> Membership:
    """Consume an invitation token for `user`.

    The invitation row is deleted before the membership is written. If the
    delete affects no rows the token was consumed concurrently and nothing
    else happens.
    """
    invitation = await find_by_token(token, session)
    if invitation is None:
        raise InvalidOrExpiredToken()
    if invitation.email != normalize_email(user.email):
        raise AuthorizationError(f"invitation {invitation.id} addressed to a different email")

    invitation_id = invitation.id
    org_id = invitation.org_id
    role = Role(invitation.role)
    inviter_id = invitation.invited_by

    if not await _delete(invitation_id, session):
        log.warning("invitation.accept_conflict", invitation_id=str(invitation_id))
        raise InvitationConsumed()

    membership = await memberships.join(user.id, org_id, role, session)
    if user.onboarding_step != OnboardingStep.COMPLETED.value:
        await users.advance_step(user, OnboardingStep.COMPLETED, session, auto_skip=True)
    await _notify_joined(user, org_id, inviter_id, session)

    log.info(
        "invitation.accepted",
        invitation_id=str(invitation_id),
        org_id=str(org_id),
        user_id=str(user.id),
        role=role.value,
    )
    return membership


async def consume_pending_for_user(user: User, session: AsyncSession) -> list[Membership]:
    """Accept every pending invitation addressed to the user's email.

    Invitations lost to a concurrent accept are skipped. An invitation into an
    org the user already belongs to is consumed without a second membership.
    """
    result = await session.execute(
        select(Invitation)
        .where(
            Invitation.email == normalize_email(user.email),
            Invitation.expires_at > utcnow(),
        )
        .order_by(Invitation.created_at)
    )
    pending = [
        (inv.id, inv.org_id, Role(inv.role), inv.invited_by)
        for inv in result.scalars().all()
    ]

    joined: list[Membership] = []
    for invitation_id, org_id, role, inviter_id in pending:
        if not await _delete(invitation_id, session):
            log.info("invitation.auto_accept_skipped", invitation_id=str(invitation_id))
            continue

        membership = await memberships.get_membership(user.id, org_id, session)
        if membership is None:
            membership = await memberships.join(user.id, org_id, role, session)
            await _notify_joined(user, org_id, inviter_id, session)
        joined.append(membership)
        log.info(
            "invitation.auto_accepted",
            invitation_id=str(invitation_id),
            org_id=str(org_id),
            user_id=str(user.id),
        )
    return joined


async def preview(token: str, session: AsyncSession) -> tuple[Invitation, Organization]:
    invitation = await find_by_token(token, session)
    if invitation is None:
        raise InvalidOrExpiredToken()
    org = await session.get(Organization, invitation.org_id)
    return invitation, org


async def revoke(
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    requested_by: uuid.UUID,
    session: AsyncSession,
) -> None:
    await memberships.require_role(requested_by, org_id, INVITER_ROLES, session)
    result = await session.execute(
        select(Invitation).where(Invitation.id == invitation_id, Invitation.org_id == org_id)
    )
    if result.scalar_one_or_none() is None or not await _delete(invitation_id, session):
        raise NotFoundError("Invitation not found")
    log.info("invitation.revoked", invitation_id=str(invitation_id), org_id=str(org_id))


async def list_pending(org_id: uuid.UUID, session: AsyncSession) -> list[Invitation]:
    """Unexpired invitations for the org, newest first."""
    result = await session.execute(
        select(Invitation)
        .where(Invitation.org_id == org_id, Invitation.expires_at > utcnow())
        .order_by(Invitation.created_at.desc())
    )
    return list(result.scalars().all())


async def purge_expired(session: AsyncSession) -> int:
    result = await session.execute(
        delete(Invitation)
        .where(Invitation.expires_at <= utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
