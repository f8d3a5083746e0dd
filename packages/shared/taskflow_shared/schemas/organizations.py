"""
Organization and membership schemas shared between server and clients.

Covers: onboarding organization setup, org read/update, member listing and
role changes.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InitialInvitation(BaseModel):
    """An invitation sent as part of organization setup. Role is free text."""
    email: EmailStr
    role: str = Role.MEMBER.value


class OrgSetupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    email: Optional[EmailStr] = Field(None, description="Organization contact email")
    address: Optional[str] = Field(None, max_length=500)
    invitations: list[InitialInvitation] = Field(
        default_factory=list,
        max_length=50,
        description="Invitations to send once the organization exists",
    )


class OrgUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, max_length=500)


class MemberRoleUpdate(BaseModel):
    role: str = Field(..., min_length=1, description="Free-text role, normalized server-side")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    email: Optional[str] = None
    address: Optional[str] = None
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: Role  # the requesting user's role in this org

    model_config = {"from_attributes": True}


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class MemberResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    joined_at: datetime


class MemberListResponse(BaseModel):
    data: list[MemberResponse]
