"""
Organization API endpoints.

GET    /api/v1/orgs                                   - List orgs for authenticated user
GET    /api/v1/orgs/{org_id}                          - Get org details
PATCH  /api/v1/orgs/{org_id}                          - Update org name/contact (admin)
GET    /api/v1/orgs/{org_id}/members                  - List members
PATCH  /api/v1/orgs/{org_id}/members/{user_id}        - Change a member's role (admin)
DELETE /api/v1/orgs/{org_id}/members/{user_id}        - Remove a member (admin)
POST   /api/v1/orgs/{org_id}/invitations              - Invite by email (admin, team lead)
GET    /api/v1/orgs/{org_id}/invitations              - List pending invitations
DELETE /api/v1/orgs/{org_id}/invitations/{id}         - Revoke (admin, team lead)
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.auth import (
    AuthenticatedUser,
    get_authenticated_user,
    require_admin,
    require_inviter,
    require_member,
)
from taskflow.core.database import get_session
from taskflow.core.rate_limit import invite_rate_limit
from taskflow.services import email as email_service
from taskflow.services import invitations as invitation_service
from taskflow.services import memberships as membership_service
from taskflow.services import organizations as org_service
from taskflow_shared.schemas.invitations import (
    InvitationCreate,
    InvitationCreated,
    InvitationListResponse,
    InvitationRead,
)
from taskflow_shared.schemas.organizations import (
    MemberListResponse,
    MemberResponse,
    MemberRoleUpdate,
    OrgListResponse,
    OrgResponse,
    OrgUpdateRequest,
)

log = structlog.get_logger()

router = APIRouter()


@router.get("/orgs", response_model=OrgListResponse)
async def list_orgs(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to."""
    items = await membership_service.list_user_orgs(auth.user_id, session)
    return OrgListResponse(data=items)


@router.get("/orgs/{org_id}", response_model=OrgResponse)
async def get_org(auth: AuthenticatedUser = Depends(require_member)):
    return OrgResponse.model_validate(auth.org)


@router.patch("/orgs/{org_id}", response_model=OrgResponse)
async def update_org(
    body: OrgUpdateRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Update org name or contact details (Admin only)."""
    org = await org_service.update_org(auth.org, body, session)
    return OrgResponse.model_validate(org)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/orgs/{org_id}/members", response_model=MemberListResponse)
async def list_members(
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    members = await membership_service.list_members(auth.org_id, session)
    return MemberListResponse(data=members)


@router.patch("/orgs/{org_id}/members/{user_id}", response_model=MemberResponse)
async def change_member_role(
    user_id: uuid.UUID,
    body: MemberRoleUpdate,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role (Admin only). Free-text roles are normalized."""
    await membership_service.change_role(auth.org_id, user_id, body.role, session)
    members = await membership_service.list_members(auth.org_id, session)
    return next(m for m in members if m["user_id"] == user_id)


@router.delete("/orgs/{org_id}/members/{user_id}", status_code=204)
async def remove_member(
    user_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.remove_member(auth.org_id, user_id, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.post(
    "/orgs/{org_id}/invitations",
    response_model=InvitationCreated,
    status_code=201,
    dependencies=[Depends(invite_rate_limit)],
)
async def create_invitation(
    body: InvitationCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(require_inviter),
    session: AsyncSession = Depends(get_session),
):
    """Invite an email address. Re-inviting refreshes the pending invitation."""
    invitation, created = await invitation_service.invite(
        auth.org_id, body.email, body.role, auth.user_id, session
    )
    if not created:
        response.status_code = 200

    url = invitation_service.accept_url(invitation.token)
    background_tasks.add_task(
        email_service.send_all,
        [
            email_service.invitation_email(
                invitation.email, auth.org.name, auth.user.display_name, invitation.role, url
            )
        ],
    )
    return InvitationCreated.model_validate(
        {**invitation.model_dump(), "accept_url": url, "refreshed": not created}
    )


@router.get("/orgs/{org_id}/invitations", response_model=InvitationListResponse)
async def list_invitations(
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    pending = await invitation_service.list_pending(auth.org_id, session)
    return InvitationListResponse(data=[InvitationRead.model_validate(i) for i in pending])


@router.delete("/orgs/{org_id}/invitations/{invitation_id}", status_code=204)
async def revoke_invitation(
    invitation_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_inviter),
    session: AsyncSession = Depends(get_session),
):
    await invitation_service.revoke(auth.org_id, invitation_id, auth.user_id, session)
    return Response(status_code=204)
