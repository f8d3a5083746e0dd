"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from taskflow_shared.schemas.common import OnboardingStep, PlanTier

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)  # stored normalized
    password_hash: Optional[str] = Field(default=None)  # bcrypt
    first_name: str = Field(default="", nullable=False)
    last_name: str = Field(default="", nullable=False)
    plan: str = Field(default=PlanTier.FREE.value, nullable=False)  # free | pro | team
    onboarding_step: str = Field(
        default=OnboardingStep.PLAN.value, nullable=False
    )  # plan | organization | completed

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email
