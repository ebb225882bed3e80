"""Order-related enums."""

from enum import Enum


class OrderStatus(str, Enum):
    """
    Service order lifecycle.

    received → diagnosing → awaiting_parts | quote_pending → repairing
    → repaired → ready_for_pickup → delivered

    canceled is reachable from every non-terminal status.
    """

    RECEIVED = "received"
    DIAGNOSING = "diagnosing"
    AWAITING_PARTS = "awaiting_parts"
    QUOTE_PENDING = "quote_pending"
    REPAIRING = "repairing"
    REPAIRED = "repaired"
    READY_FOR_PICKUP = "ready_for_pickup"
    DELIVERED = "delivered"
    CANCELED = "canceled"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELED})
ACTIVE_ORDER_STATUSES = frozenset(s for s in OrderStatus if s not in TERMINAL_ORDER_STATUSES)


class OrderPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class SemaphoreColor(str, Enum):
    """Triage color derived from status and elapsed time."""

    RED = "red"  # Ready for pickup, uncollected past the red threshold
    ORANGE = "orange"  # Waiting on parts
    YELLOW = "yellow"  # Diagnosis/quote stalled past the yellow threshold
    BLUE = "blue"  # Recently received
    GREEN = "green"  # On track
