"""
In-app notification endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.auth import AuthenticatedUser, get_authenticated_user
from taskflow.core.database import get_session
from taskflow.services import notifications as notification_service
from taskflow_shared.schemas.notifications import NotificationListResponse, NotificationRead
from taskflow_shared.schemas.users import MessageResponse

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    items, unread = await notification_service.list_for_user(auth.user_id, session)
    return NotificationListResponse(
        data=[NotificationRead.model_validate(n) for n in items], unread=unread
    )


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    notification = await notification_service.mark_read(notification_id, auth.user_id, session)
    return NotificationRead.model_validate(notification)


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    count = await notification_service.mark_all_read(auth.user_id, session)
    return MessageResponse(message=f"Marked {count} notifications as read")
