"""Invitation ledger schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from .common import Role


class InvitationCreate(BaseModel):
    """Invite an email address to an org. Role is free text, e.g. "Team Lead"."""
    email: EmailStr
    role: str = Field(default=Role.MEMBER.value, min_length=1, max_length=50)


class InvitationRead(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    email: str
    role: Role
    invited_by: uuid.UUID
    created_at: datetime
    expires_at: datetime

    model_config = {"from_attributes": True}


class InvitationCreated(InvitationRead):
    """Returned to the inviter only. The token is what goes into the accept link."""
    token: str
    accept_url: str
    refreshed: bool = False


class InvitationListResponse(BaseModel):
    data: List[InvitationRead]


class InvitationPreview(BaseModel):
    org_id: uuid.UUID
    organization_name: str
    email: str
    role: Role
    expires_at: datetime


class InvitationAccepted(BaseModel):
    org_id: uuid.UUID
    role: Role
    onboarding_step: str
    message: Optional[str] = None
