"""Order lifecycle - transition graph and the triage semaphore.

``derive_semaphore`` is the single source of truth for the triage color used
by list views, the dashboard summary and the alert scanner. It is pure: same
order snapshot and ``now`` in, same color out.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Protocol

from repairshop.db.enums import OrderStatus, SemaphoreColor, TERMINAL_ORDER_STATUSES
from repairshop.utils.datetime_parsing import as_utc


# Fixed adjacency table. Rework edges (e.g. repairing -> diagnosing) are
# allowed; terminal statuses have no way out.
VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.RECEIVED: frozenset({
        OrderStatus.DIAGNOSING,
        OrderStatus.CANCELED,
    }),
    OrderStatus.DIAGNOSING: frozenset({
        OrderStatus.AWAITING_PARTS,
        OrderStatus.QUOTE_PENDING,
        OrderStatus.REPAIRING,
        OrderStatus.RECEIVED,
        OrderStatus.CANCELED,
    }),
    OrderStatus.AWAITING_PARTS: frozenset({
        OrderStatus.DIAGNOSING,
        OrderStatus.REPAIRING,
        OrderStatus.CANCELED,
    }),
    OrderStatus.QUOTE_PENDING: frozenset({
        OrderStatus.REPAIRING,
        OrderStatus.DIAGNOSING,
        OrderStatus.CANCELED,
    }),
    OrderStatus.REPAIRING: frozenset({
        OrderStatus.REPAIRED,
        OrderStatus.AWAITING_PARTS,
        OrderStatus.DIAGNOSING,
        OrderStatus.CANCELED,
    }),
    OrderStatus.REPAIRED: frozenset({
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.REPAIRING,
        OrderStatus.CANCELED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.CANCELED,
    }),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}

TRANSITION_NOTES: dict[tuple[OrderStatus, OrderStatus], str] = {
    (OrderStatus.RECEIVED, OrderStatus.DIAGNOSING): "Equipment moved to diagnosis",
    (OrderStatus.DIAGNOSING, OrderStatus.AWAITING_PARTS): "Waiting for parts",
    (OrderStatus.DIAGNOSING, OrderStatus.QUOTE_PENDING): "Quote sent to customer",
    (OrderStatus.DIAGNOSING, OrderStatus.REPAIRING): "Repair started",
    (OrderStatus.QUOTE_PENDING, OrderStatus.REPAIRING): "Quote approved, repair started",
    (OrderStatus.QUOTE_PENDING, OrderStatus.CANCELED): "Quote rejected by customer",
    (OrderStatus.AWAITING_PARTS, OrderStatus.REPAIRING): "Parts received, repair started",
    (OrderStatus.REPAIRING, OrderStatus.REPAIRED): "Repair completed",
    (OrderStatus.REPAIRED, OrderStatus.READY_FOR_PICKUP): "Equipment ready for pickup",
    (OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED): "Equipment delivered to customer",
}


class InvalidTransitionError(ValueError):
    """Requested status change is not an edge of the transition graph."""

    def __init__(self, current: OrderStatus, new: OrderStatus) -> None:
        self.current = current
        self.new = new
        super().__init__(f"Invalid status transition: {current.value} -> {new.value}")


class LifecycleOrder(Protocol):
    """The order fields the lifecycle functions read and write."""

    status: str
    received_at: datetime
    repaired_at: datetime | None
    delivered_at: datetime | None
    canceled_at: datetime | None


def is_terminal(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in TERMINAL_ORDER_STATUSES


def is_valid_transition(current: OrderStatus | str, new: OrderStatus | str) -> bool:
    """Whether ``current -> new`` is allowed. Same status is a no-op and valid."""
    current, new = OrderStatus(current), OrderStatus(new)
    if current == new:
        return True
    return new in VALID_TRANSITIONS[current]


def transition_note(current: OrderStatus | str | None, new: OrderStatus | str) -> str:
    new = OrderStatus(new)
    if current is None:
        return "Order received"
    current = OrderStatus(current)
    return TRANSITION_NOTES.get(
        (current, new), f"Status changed from {current.value} to {new.value}"
    )


def apply_transition(order: LifecycleOrder, new_status: OrderStatus | str, now: datetime) -> OrderStatus:
    """
    Move ``order`` to ``new_status`` and stamp the matching timestamp.

    Returns the previous status. Raises InvalidTransitionError for edges
    outside the graph.
    """
    current = OrderStatus(order.status)
    new = OrderStatus(new_status)
    if not is_valid_transition(current, new):
        raise InvalidTransitionError(current, new)
    if current == new:
        return current

    order.status = new.value
    # Every entry into repaired restarts the pickup clock
    if new == OrderStatus.REPAIRED:
        order.repaired_at = now
    elif new == OrderStatus.DELIVERED:
        order.delivered_at = now
    elif new == OrderStatus.CANCELED:
        order.canceled_at = now
    return current


# =============================================================================
# Semaphore
# =============================================================================


@dataclass(frozen=True)
class SemaphoreConfig:
    """Operator-tunable thresholds for the triage semaphore."""

    red_days: float = 5
    yellow_hours: float = 72
    new_hours: float = 24

    @property
    def red_after(self) -> timedelta:
        return timedelta(days=self.red_days)

    @property
    def yellow_after(self) -> timedelta:
        return timedelta(hours=self.yellow_hours)

    @property
    def new_within(self) -> timedelta:
        return timedelta(hours=self.new_hours)

    @classmethod
    def from_settings(cls, settings) -> "SemaphoreConfig":
        return cls(
            red_days=settings.ALERT_RED_DAYS,
            yellow_hours=settings.ALERT_YELLOW_HOURS,
            new_hours=settings.SEMAPHORE_NEW_HOURS,
        )


DEFAULT_SEMAPHORE_CONFIG = SemaphoreConfig()


def derive_semaphore(
    order: LifecycleOrder,
    now: datetime,
    config: SemaphoreConfig = DEFAULT_SEMAPHORE_CONFIG,
) -> SemaphoreColor | None:
    """
    Triage color for an order at ``now``. None for delivered/canceled.

    Rules, first match wins:
        ready_for_pickup and repaired_at older than red threshold -> RED
        awaiting_parts -> ORANGE
        diagnosing/quote_pending older than yellow threshold -> YELLOW
        received within the "new" window -> BLUE
        otherwise -> GREEN
    """
    status = OrderStatus(order.status)
    if status in TERMINAL_ORDER_STATUSES:
        return None

    now = as_utc(now)
    age = now - as_utc(order.received_at)

    if status == OrderStatus.READY_FOR_PICKUP and order.repaired_at is not None:
        if now - as_utc(order.repaired_at) > config.red_after:
            return SemaphoreColor.RED

    if status == OrderStatus.AWAITING_PARTS:
        return SemaphoreColor.ORANGE

    if status in (OrderStatus.DIAGNOSING, OrderStatus.QUOTE_PENDING) and age > config.yellow_after:
        return SemaphoreColor.YELLOW

    if age < config.new_within:
        return SemaphoreColor.BLUE

    return SemaphoreColor.GREEN


def summarize_semaphores(
    orders: Iterable[LifecycleOrder],
    now: datetime,
    config: SemaphoreConfig = DEFAULT_SEMAPHORE_CONFIG,
) -> dict[str, int]:
    """Count active orders per color (terminal orders are not tallied)."""
    counts: Counter[str] = Counter({color.value: 0 for color in SemaphoreColor})
    for order in orders:
        color = derive_semaphore(order, now, config)
        if color is not None:
            counts[color.value] += 1
    return dict(counts)
