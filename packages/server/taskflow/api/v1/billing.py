"""
Billing endpoints (mocked, no payment provider).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.auth import AuthenticatedUser, get_authenticated_user
from taskflow.core.database import get_session
from taskflow.services import billing as billing_service
from taskflow_shared.schemas.onboarding import (
    PlanListResponse,
    PlanSelectRequest,
    SubscriptionStatus,
)

router = APIRouter()


@router.get("/plans", response_model=PlanListResponse)
async def list_plans():
    return PlanListResponse(data=billing_service.list_plans())


@router.get("/subscription", response_model=SubscriptionStatus)
async def get_subscription(auth: AuthenticatedUser = Depends(get_authenticated_user)):
    return SubscriptionStatus(**billing_service.subscription_status(auth.user))


@router.post("/swap-plan", response_model=SubscriptionStatus)
async def swap_plan(
    body: PlanSelectRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Change plan. Only admins of at least one organization may do this."""
    user = await billing_service.swap_plan(auth.user, body.plan, session)
    return SubscriptionStatus(**billing_service.subscription_status(user))
