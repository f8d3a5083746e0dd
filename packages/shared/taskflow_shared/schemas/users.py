"""User and authentication schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import OnboardingStep, PlanTier


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=200)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserRead(BaseModel):
    """A user as seen by the user themselves (never includes the hash)."""
    id: UUID4
    email: str
    first_name: str
    last_name: str
    plan: PlanTier
    onboarding_step: OnboardingStep
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    user: UserRead
    message: str
    accepted_invitations: int = 0
    access_token: Optional[str] = None  # for Bearer clients; browsers use the cookie


class MessageResponse(BaseModel):
    message: str
    detail: Optional[str] = None
