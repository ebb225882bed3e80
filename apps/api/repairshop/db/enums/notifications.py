"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of in-app notifications."""

    # Lifecycle events
    ORDER_CREATED = "order_created"
    STATUS_CHANGED = "status_changed"
    ORDER_CANCELED = "order_canceled"
    TECHNICIAN_REASSIGNED = "technician_reassigned"
    PRIORITY_URGENT = "priority_urgent"
    QUOTE_CHANGED = "quote_changed"

    # Periodic scanner alerts (deduped while unread)
    ALERT_RED = "alert_red"  # Ready for pickup too long
    ALERT_YELLOW = "alert_yellow"  # Diagnosis/quote stalled


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
