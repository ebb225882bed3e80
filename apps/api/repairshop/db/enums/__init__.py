"""Enum definitions for application constants."""

from repairshop.db.enums.auth import Role
from repairshop.db.enums.notifications import NotificationPriority, NotificationType
from repairshop.db.enums.orders import (
    ACTIVE_ORDER_STATUSES,
    TERMINAL_ORDER_STATUSES,
    OrderPriority,
    OrderStatus,
    SemaphoreColor,
)

__all__ = [
    "ACTIVE_ORDER_STATUSES",
    "NotificationPriority",
    "NotificationType",
    "OrderPriority",
    "OrderStatus",
    "Role",
    "SemaphoreColor",
    "TERMINAL_ORDER_STATUSES",
]
