"""
Onboarding endpoints.

GET  /api/v1/onboarding                      - Evaluate and return the current step
POST /api/v1/onboarding/select-plan          - plan -> organization
POST /api/v1/onboarding/setup-organization   - organization -> completed
POST /api/v1/onboarding/complete             - Finish without creating an org explicitly
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.auth import AuthenticatedUser, get_authenticated_user
from taskflow.core.database import get_session
from taskflow.services import email as email_service
from taskflow.services import invitations as invitation_service
from taskflow.services import memberships as membership_service
from taskflow.services import onboarding as onboarding_service
from taskflow_shared.schemas.invitations import InvitationCreated
from taskflow_shared.schemas.onboarding import (
    OnboardingCompleteResponse,
    OnboardingState,
    OrgSetupResponse,
    PlanSelectRequest,
)
from taskflow_shared.schemas.organizations import OrgResponse, OrgSetupRequest

router = APIRouter()


async def _state(auth: AuthenticatedUser, session: AsyncSession, accepted: int) -> OnboardingState:
    return OnboardingState(
        step=auth.user.onboarding_step,
        plan=auth.user.plan,
        organizations=await membership_service.list_user_orgs(auth.user_id, session),
        accepted_invitations=accepted,
    )


@router.get("", response_model=OnboardingState)
async def get_onboarding(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Current step. Pending invitations for the user's email are accepted first."""
    state = await onboarding_service.evaluate(auth.user, session)
    return OnboardingState(**state)


@router.post("/select-plan", response_model=OnboardingState)
async def select_plan(
    body: PlanSelectRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    _user, accepted = await onboarding_service.select_plan(auth.user, body.plan, session)
    return await _state(auth, session, accepted)


@router.post("/setup-organization", response_model=OrgSetupResponse, status_code=201)
async def setup_organization(
    body: OrgSetupRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Create the user's organization and its initial invitations."""
    org, sent = await onboarding_service.setup_organization(auth.user, body, session)

    created = []
    emails = []
    for invitation, was_created in sent:
        url = invitation_service.accept_url(invitation.token)
        created.append(
            InvitationCreated.model_validate(
                {
                    **invitation.model_dump(),
                    "accept_url": url,
                    "refreshed": not was_created,
                }
            )
        )
        emails.append(
            email_service.invitation_email(
                invitation.email, org.name, auth.user.display_name, invitation.role, url
            )
        )
    if emails:
        background_tasks.add_task(email_service.send_all, emails)

    return OrgSetupResponse(
        organization=OrgResponse.model_validate(org),
        invitations=created,
        onboarding_step=auth.user.onboarding_step,
    )


@router.post("/complete", response_model=OnboardingCompleteResponse)
async def complete_onboarding(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    workspace = await onboarding_service.complete(auth.user, session)
    return OnboardingCompleteResponse(
        onboarding_step=auth.user.onboarding_step,
        workspace=OrgResponse.model_validate(workspace) if workspace else None,
    )
