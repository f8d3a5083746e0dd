import re
from enum import Enum
from typing import Optional
from pydantic import BaseModel

class Role(str, Enum):
    ADMIN = "admin"
    TEAM_LEAD = "team_lead"
    MEMBER = "member"

# Roles allowed to manage invitations
INVITER_ROLES: frozenset["Role"] = frozenset({Role.ADMIN, Role.TEAM_LEAD})

class OnboardingStep(str, Enum):
    PLAN = "plan"
    ORGANIZATION = "organization"
    COMPLETED = "completed"

# Ordered list for transition validation
ONBOARDING_ORDER: list["OnboardingStep"] = [
    OnboardingStep.PLAN,
    OnboardingStep.ORGANIZATION,
    OnboardingStep.COMPLETED,
]

class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    TEAM = "team"

class NotificationType(str, Enum):
    INVITATION_RECEIVED = "invitation_received"
    ADDED_TO_ORGANIZATION = "added_to_organization"
    INVITATION_ACCEPTED = "invitation_accepted"

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    retry_after: Optional[int] = None

class ErrorResponse(BaseModel):
    error: ErrorBody


_ROLE_SEPARATORS = re.compile(r"[\s\-_]+")


def normalize_role(value: object) -> Role:
    """Map free-text role input onto the closed Role enum.

    "Team Lead", "team-lead" and "TEAM_LEAD" all become Role.TEAM_LEAD.
    Raises ValueError for anything that does not match a role.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Role must be a string, got {type(value).__name__}")
    candidate = _ROLE_SEPARATORS.sub("_", value.strip().lower()).strip("_")
    try:
        return Role(candidate)
    except ValueError:
        allowed = ", ".join(r.value for r in Role)
        raise ValueError(f"Unknown role '{value}'. Expected one of: {allowed}") from None


def normalize_email(value: str) -> str:
    return value.strip().lower()


def validate_step_transition(
    current: OnboardingStep, target: OnboardingStep, *, auto_skip: bool = False
) -> tuple[bool, str]:
    """Validate an onboarding step transition.

    Rules:
    - Completed is terminal.
    - Backward transitions are never allowed.
    - Forward transitions move one step at a time, except that an accepted
      invitation may jump straight to completed.

    Returns (is_valid, error_message).
    """
    if current == OnboardingStep.COMPLETED:
        return False, "Onboarding is already completed"

    if current == target:
        return False, f"User is already in {current.value} step"

    current_idx = ONBOARDING_ORDER.index(current)
    target_idx = ONBOARDING_ORDER.index(target)

    if target_idx < current_idx:
        return False, f"Cannot move back from {current.value} to {target.value}"

    if target_idx == current_idx + 1:
        return True, ""

    if auto_skip and target == OnboardingStep.COMPLETED:
        return True, ""

    return False, (
        f"Cannot transition from {current.value} to {target.value}. "
        f"Next step is {ONBOARDING_ORDER[current_idx + 1].value}"
    )
