"""Pending organization invitation. Row present = pending; row deleted = consumed or revoked."""

from datetime import datetime, timedelta
import secrets
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, as_utc, utcnow


def generate_invitation_token() -> str:
    """Opaque, unguessable single-use token."""
    return secrets.token_urlsafe(32)


class Invitation(UUIDMixin, SQLModel, table=True):
    __tablename__ = "invitations"
    __table_args__ = (
        sa.UniqueConstraint("org_id", "email", name="uq_invitations_org_email"),
    )

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    email: str = Field(nullable=False, index=True)  # normalized
    role: str = Field(nullable=False, default="member")  # normalized Role value
    token: str = Field(
        default_factory=generate_invitation_token, unique=True, nullable=False, index=True
    )
    invited_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))

    @staticmethod
    def expiry_from_now(days: int) -> datetime:
        return utcnow() + timedelta(days=days)

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= utcnow()
