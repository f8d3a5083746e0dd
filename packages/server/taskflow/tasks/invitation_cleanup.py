"""
ARQ background task: delete invitations whose expiry has passed.

Expired rows are already ignored by accept and listing; this only keeps the
table small.
"""

from __future__ import annotations

import structlog

from taskflow.core.database import get_session_context
from taskflow.services.invitations import purge_expired

log = structlog.get_logger()


async def purge_expired_invitations(ctx: dict) -> int:
    """Returns the number of invitations removed."""
    async with get_session_context() as session:
        count = await purge_expired(session)

    if count:
        log.info("invitation_cleanup.purged", count=count)
    return count


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [purge_expired_invitations]
    cron_jobs = [
        # Run every hour
        {
            "coroutine": purge_expired_invitations,
            "hour": None,  # every hour
            "minute": 0,
        },
    ]
