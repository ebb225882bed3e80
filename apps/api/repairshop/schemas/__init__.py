"""Pydantic schemas for API request/response models."""

from repairshop.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from repairshop.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderListResponse,
    OrderRead,
    OrderStatusHistoryRead,
    OrderUpdate,
    SemaphoreSummary,
)

__all__ = [
    # Orders
    "OrderCreate",
    "OrderUpdate",
    "OrderCancel",
    "OrderRead",
    "OrderListResponse",
    "OrderStatusHistoryRead",
    "SemaphoreSummary",
    # Notifications
    "NotificationRead",
    "NotificationListResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
]
