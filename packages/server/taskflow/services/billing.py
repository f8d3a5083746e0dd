"""
Mocked billing: a fixed plan catalogue and plan changes recorded on the user.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.errors import AuthorizationError, ValidationError
from taskflow.models.user import User
from taskflow.services import memberships
from taskflow_shared.schemas.common import PlanTier

log = structlog.get_logger()

# Monthly price in cents.
PLANS: dict[PlanTier, tuple[str, int]] = {
    PlanTier.FREE: ("Free", 0),
    PlanTier.PRO: ("Pro", 2900),
    PlanTier.TEAM: ("Team", 9900),
}


def list_plans() -> list[dict]:
    return [{"id": tier, "name": name, "amount": amount} for tier, (name, amount) in PLANS.items()]


def parse_plan(raw: str) -> PlanTier:
    try:
        return PlanTier(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in PlanTier)
        raise ValidationError(f"Unknown plan '{raw}'. Expected one of: {allowed}", code="INVALID_PLAN")


async def record_plan(user: User, plan: PlanTier, session: AsyncSession) -> User:
    previous = user.plan
    user.plan = plan.value
    session.add(user)
    await session.flush()
    log.info("billing.plan_changed", user_id=str(user.id), from_plan=previous, to_plan=plan.value)
    return user


async def swap_plan(user: User, raw_plan: str, session: AsyncSession) -> User:
    """Change plan outside onboarding. Only org admins may do this."""
    plan = parse_plan(raw_plan)
    if not await memberships.is_admin_anywhere(user.id, session):
        raise AuthorizationError(f"user {user.id} is not an admin of any organization")
    return await record_plan(user, plan, session)


def subscription_status(user: User) -> dict:
    return {"plan": PlanTier(user.plan), "subscription": None}
