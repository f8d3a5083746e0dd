from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .common import NotificationType


class NotificationRead(BaseModel):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    read: bool
    related_org_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    data: List[NotificationRead]
    unread: int = 0
