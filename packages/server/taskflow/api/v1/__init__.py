"""
API v1 Router

Org-scoped endpoints live under /orgs/{org_id}; everything else is scoped to
the authenticated user.
"""

from fastapi import APIRouter, Depends

from taskflow.core.errors import ERROR_RESPONSES
from taskflow.core.rate_limit import api_rate_limit
from . import billing, invitations, notifications, onboarding, organizations

router = APIRouter(dependencies=[Depends(api_rate_limit)], responses=ERROR_RESPONSES)

router.include_router(onboarding.router, prefix="/onboarding", tags=["Onboarding"])
router.include_router(organizations.router, tags=["Organizations"])
router.include_router(invitations.router, tags=["Invitations"])
router.include_router(billing.router, prefix="/billing", tags=["Billing"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/onboarding",
            "/orgs",
            "/orgs/{org_id}/members",
            "/orgs/{org_id}/invitations",
            "/invitations/{token}",
            "/billing",
            "/notifications",
        ],
    }
