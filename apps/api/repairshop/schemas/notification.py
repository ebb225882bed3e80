"""Notification schemas for /me/notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: UUID
    type: str
    priority: str
    title: str
    message: str
    order_id: UUID | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Cursor-paginated notification list."""

    items: list[NotificationRead]
    unread_count: int
    next_cursor: str | None = None


class UnreadCountResponse(BaseModel):
    """Unread count only (for polling)."""

    count: int


class MarkAllReadResponse(BaseModel):
    marked_read: int
