"""
In-app notifications.

Rows are written inside the caller's transaction so a notice exists only if
the change it describes was committed.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskflow.core.errors import NotFoundError
from taskflow.models.notification import Notification
from taskflow_shared.schemas.common import NotificationType

log = structlog.get_logger()


async def notify(
    user_id: uuid.UUID,
    type: NotificationType,
    title: str,
    message: str,
    session: AsyncSession,
    *,
    related_org_id: Optional[uuid.UUID] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type.value,
        title=title,
        message=message,
        related_org_id=related_org_id,
    )
    session.add(notification)
    await session.flush()
    log.info("notification.created", user_id=str(user_id), type=type.value)
    return notification


async def list_for_user(
    user_id: uuid.UUID, session: AsyncSession, *, limit: int = 50
) -> tuple[list[Notification], int]:
    """Newest notifications first, plus the unread count."""
    result = await session.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    unread = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return list(result.scalars().all()), unread.scalar_one()


async def mark_read(
    notification_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Notification:
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")
    notification.read = True
    session.add(notification)
    await session.flush()
    return notification


async def mark_all_read(user_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
