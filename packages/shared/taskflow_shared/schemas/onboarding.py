"""Onboarding and billing schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .common import OnboardingStep, PlanTier
from .invitations import InvitationCreated
from .organizations import OrgListItem, OrgResponse


class PlanSelectRequest(BaseModel):
    plan: str = Field(..., min_length=1, description="Plan identifier: free, pro or team")


class OnboardingState(BaseModel):
    step: OnboardingStep
    plan: PlanTier
    organizations: List[OrgListItem] = Field(default_factory=list)
    accepted_invitations: int = 0


class PlanInfo(BaseModel):
    id: PlanTier
    name: str
    amount: int  # cents per month


class PlanListResponse(BaseModel):
    data: List[PlanInfo]


class SubscriptionStatus(BaseModel):
    plan: PlanTier
    subscription: Optional[dict] = None


class OrgSetupResponse(BaseModel):
    organization: OrgResponse
    invitations: List[InvitationCreated] = Field(default_factory=list)
    onboarding_step: OnboardingStep


class OnboardingCompleteResponse(BaseModel):
    onboarding_step: OnboardingStep
    workspace: Optional[OrgResponse] = None
