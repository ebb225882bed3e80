"""
Notifications Router - /me/notifications endpoints.

Provides the caller's inbox, unread count and read acknowledgment.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from repairshop.core.deps import get_current_user, get_order_engine
from repairshop.db.models import User
from repairshop.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from repairshop.services.order_service import OrderEngine
from repairshop.utils.pagination import MAX_LIMIT


router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False),
    cursor: Optional[str] = Query(None, description="created_at of the last item seen"),
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Get the caller's notifications, newest first."""
    try:
        page = engine.dispatcher.list(
            user.id, unread_only=unread_only, cursor=cursor, limit=limit
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid cursor")

    return NotificationListResponse(
        items=[NotificationRead.model_validate(n) for n in page.items],
        unread_count=engine.dispatcher.count_unread(user.id),
        next_cursor=page.next_cursor,
    )


@router.get("/notifications/count", response_model=UnreadCountResponse)
def get_unread_count(
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Get unread notification count (for polling)."""
    return UnreadCountResponse(count=engine.dispatcher.count_unread(user.id))


@router.patch("/notifications/{notification_id}/read", status_code=204)
def mark_notification_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Mark one of the caller's notifications as read."""
    if not engine.dispatcher.mark_read(notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification not found")


@router.post("/notifications/read-all", response_model=MarkAllReadResponse)
def mark_all_read(
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Mark all of the caller's notifications as read."""
    return MarkAllReadResponse(marked_read=engine.dispatcher.mark_all_read(user.id))
