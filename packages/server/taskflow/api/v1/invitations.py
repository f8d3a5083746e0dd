"""
Token-addressed invitation endpoints.

GET  /api/v1/invitations/{token}         - Preview for the accept page
POST /api/v1/invitations/{token}/accept  - Accept as the signed-in user
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.auth import AuthenticatedUser, get_authenticated_user
from taskflow.core.database import get_session
from taskflow.models.organization import Organization
from taskflow.services import email as email_service
from taskflow.services import invitations as invitation_service
from taskflow.services import users as user_service
from taskflow_shared.schemas.invitations import InvitationAccepted, InvitationPreview

router = APIRouter()


@router.get("/invitations/{token}", response_model=InvitationPreview)
async def preview_invitation(token: str, session: AsyncSession = Depends(get_session)):
    invitation, org = await invitation_service.preview(token, session)
    return InvitationPreview(
        org_id=org.id,
        organization_name=org.name,
        email=invitation.email,
        role=invitation.role,
        expires_at=invitation.expires_at,
    )


@router.post("/invitations/{token}/accept", response_model=InvitationAccepted)
async def accept_invitation(
    token: str,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Join the invitation's organization. A token works once."""
    invitation = await invitation_service.find_by_token(token, session)
    inviter_id = invitation.invited_by if invitation else None

    membership = await invitation_service.accept(token, auth.user, session)

    org = await session.get(Organization, membership.org_id)
    inviter = await user_service.get_by_id(inviter_id, session) if inviter_id else None
    if inviter and inviter.id != auth.user_id:
        background_tasks.add_task(
            email_service.send_all,
            [email_service.acceptance_email(inviter.email, org.name, auth.user.display_name)],
        )

    return InvitationAccepted(
        org_id=membership.org_id,
        role=membership.role,
        onboarding_step=auth.user.onboarding_step,
        message=f"You have joined {org.name}",
    )
