"""
Onboarding state machine: plan -> organization -> completed.

A user with a pending invitation skips straight to completed. That check runs
at registration, whenever the step is evaluated, and when a plan is selected.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.errors import OnboardingOrderError
from taskflow.models.invitation import Invitation
from taskflow.models.organization import Organization
from taskflow.models.user import User
from taskflow.services import billing, invitations, memberships, organizations, users
from taskflow_shared.schemas.common import (
    OnboardingStep,
    normalize_email,
    validate_step_transition,
)
from taskflow_shared.schemas.organizations import OrgSetupRequest

log = structlog.get_logger()


def _step(user: User) -> OnboardingStep:
    return OnboardingStep(user.onboarding_step)


def _ensure_can_complete(user: User) -> None:
    ok, message = validate_step_transition(_step(user), OnboardingStep.COMPLETED)
    if not ok:
        raise OnboardingOrderError(message)


async def auto_skip(user: User, session: AsyncSession) -> int:
    """Consume pending invitations for the user. Returns how many were accepted."""
    if _step(user) == OnboardingStep.COMPLETED:
        return 0
    joined = await invitations.consume_pending_for_user(user, session)
    if joined:
        await users.advance_step(user, OnboardingStep.COMPLETED, session, auto_skip=True)
    return len(joined)


async def register(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    session: AsyncSession,
) -> tuple[User, int]:
    user = await users.create_user(email, password, first_name, last_name, session)
    accepted = await auto_skip(user, session)
    log.info("onboarding.registered", user_id=str(user.id), accepted_invitations=accepted)
    return user, accepted


async def evaluate(user: User, session: AsyncSession) -> dict:
    """Current onboarding state, after applying any pending invitations."""
    accepted = await auto_skip(user, session)
    return {
        "step": _step(user),
        "plan": user.plan,
        "organizations": await memberships.list_user_orgs(user.id, session),
        "accepted_invitations": accepted,
    }


async def select_plan(user: User, raw_plan: str, session: AsyncSession) -> tuple[User, int]:
    """Record the chosen plan and leave the plan step.

    Re-selecting while in the organization step only changes the plan.
    """
    plan = billing.parse_plan(raw_plan)
    if _step(user) == OnboardingStep.COMPLETED:
        raise OnboardingOrderError("Onboarding is already completed")

    await billing.record_plan(user, plan, session)
    accepted = await auto_skip(user, session)
    if not accepted and _step(user) == OnboardingStep.PLAN:
        await users.advance_step(user, OnboardingStep.ORGANIZATION, session)
    return user, accepted


async def setup_organization(
    user: User, req: OrgSetupRequest, session: AsyncSession
) -> tuple[Organization, list[tuple[Invitation, bool]]]:
    """Create the user's organization, send its first invitations and finish onboarding."""
    _ensure_can_complete(user)

    # Reject a bad role before anything is written.
    roles = [memberships.coerce_role(entry.role) for entry in req.invitations]

    org = await organizations.create_org(
        req.name, user, session, email=req.email, address=req.address
    )

    owner_email = normalize_email(user.email)
    sent = []
    for entry, role in zip(req.invitations, roles):
        if normalize_email(entry.email) == owner_email:
            continue
        sent.append(await invitations.invite(org.id, entry.email, role, user.id, session))

    await users.advance_step(user, OnboardingStep.COMPLETED, session)
    log.info("onboarding.organization_created", user_id=str(user.id), org_id=str(org.id))
    return org, sent


async def complete(user: User, session: AsyncSession) -> Optional[Organization]:
    """Finish onboarding from the organization step.

    A user without any membership gets a default workspace first. Returns that
    workspace, or None if the user already belonged to an org.
    """
    _ensure_can_complete(user)

    workspace = None
    if not await memberships.list_user_orgs(user.id, session):
        workspace = await organizations.initialize_workspace(user, session)

    await users.advance_step(user, OnboardingStep.COMPLETED, session)
    return workspace
