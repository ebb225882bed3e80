"""Order service - business logic for service order operations.

Wires the folio allocator, lifecycle rules and notification triggers over a
request-scoped session. Order changes are committed before any notification
is attempted; notification failures never undo them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from repairshop.core.config import Settings, settings as default_settings
from repairshop.core.structured_logging import build_log_context
from repairshop.db.enums import (
    ACTIVE_ORDER_STATUSES,
    OrderPriority,
    OrderStatus,
    SemaphoreColor,
)
from repairshop.db.models import Order, OrderStatusHistory, User
from repairshop.schemas.order import OrderCreate, OrderUpdate
from repairshop.services.alert_scanner import AlertScanner
from repairshop.services.folio_service import FolioAllocator
from repairshop.services.notification_service import NotificationDispatcher
from repairshop.services.notification_triggers import OrderNotifier
from repairshop.services.order_lifecycle import (
    InvalidTransitionError,
    SemaphoreConfig,
    apply_transition,
    derive_semaphore,
    is_terminal,
    is_valid_transition,
    summarize_semaphores,
    transition_note,
)
from repairshop.services.order_stores import (
    SqlNotificationStore,
    SqlOrderStore,
    SqlUserDirectory,
)
from repairshop.utils.datetime_parsing import resolve_timezone
from repairshop.utils.normalization import normalize_equipment_label, normalize_name

logger = logging.getLogger(__name__)


class OrderNotFoundError(LookupError):
    def __init__(self, order_id: UUID) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class OrderClosedError(Exception):
    """Edit or cancel attempted on a delivered/canceled order."""

    def __init__(self, order: Order) -> None:
        self.folio = order.folio
        self.status = order.status
        super().__init__(f"Order {order.folio} is {order.status} and can no longer be changed")


class InvalidAssigneeError(ValueError):
    """Technician id does not match an active user."""


# =============================================================================
# Wiring
# =============================================================================


@dataclass
class OrderEngine:
    """Everything an order operation needs, bound to one session."""

    db: Session
    orders: SqlOrderStore
    notifications: SqlNotificationStore
    users: SqlUserDirectory
    allocator: FolioAllocator
    dispatcher: NotificationDispatcher
    notifier: OrderNotifier
    scanner: AlertScanner
    semaphore: SemaphoreConfig
    clock: Callable[[], datetime]

    def now(self) -> datetime:
        return self.clock()


def build_engine(
    db: Session,
    app_settings: Settings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> OrderEngine:
    """Build stores and services for ``db`` from application settings."""
    app_settings = app_settings or default_settings
    clock = clock or (lambda: datetime.now(timezone.utc))
    semaphore = SemaphoreConfig.from_settings(app_settings)

    orders = SqlOrderStore(db)
    notifications = SqlNotificationStore(db)
    users = SqlUserDirectory(db)
    allocator = FolioAllocator(
        orders,
        tz=resolve_timezone(app_settings.SHOP_TIMEZONE),
        max_retries=app_settings.FOLIO_MAX_RETRIES,
        clock=clock,
    )
    dispatcher = NotificationDispatcher(notifications, users, clock=clock)
    return OrderEngine(
        db=db,
        orders=orders,
        notifications=notifications,
        users=users,
        allocator=allocator,
        dispatcher=dispatcher,
        notifier=OrderNotifier(dispatcher),
        scanner=AlertScanner(orders, notifications, dispatcher, semaphore, clock=clock),
        semaphore=semaphore,
        clock=clock,
    )


# =============================================================================
# Reads
# =============================================================================


def get_order(engine: OrderEngine, order_id: UUID) -> Order:
    order = engine.orders.get(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def list_active_orders(
    engine: OrderEngine,
    semaphore: SemaphoreColor | None = None,
    now: datetime | None = None,
) -> list[tuple[Order, SemaphoreColor]]:
    """Active orders, oldest first, each paired with its triage color."""
    now = now or engine.now()
    rows = []
    for order in engine.orders.list_by_statuses(ACTIVE_ORDER_STATUSES):
        color = derive_semaphore(order, now, engine.semaphore)
        if color is None or (semaphore is not None and color != semaphore):
            continue
        rows.append((order, color))
    return rows


def semaphore_summary(engine: OrderEngine, now: datetime | None = None) -> dict[str, int]:
    orders = engine.orders.list_by_statuses(ACTIVE_ORDER_STATUSES)
    return summarize_semaphores(orders, now or engine.now(), engine.semaphore)


def get_status_history(engine: OrderEngine, order_id: UUID) -> list[OrderStatusHistory]:
    return list(get_order(engine, order_id).status_history)


# =============================================================================
# Writes
# =============================================================================


def _require_technician(engine: OrderEngine, technician_id: UUID | None) -> None:
    if technician_id is None:
        return
    user = engine.db.get(User, technician_id)
    if user is None or not user.is_active:
        raise InvalidAssigneeError(f"Technician {technician_id} not found or inactive")


def _require_open(order: Order) -> None:
    if is_terminal(order.status):
        raise OrderClosedError(order)


def create_order(engine: OrderEngine, data: OrderCreate, created_by: User) -> Order:
    """
    Register a received equipment and allocate its folio.

    Raises:
        FolioGenerationError: folio allocation kept colliding
        InvalidAssigneeError: unknown or inactive technician
    """
    _require_technician(engine, data.assigned_technician_id)
    now = engine.now()

    order = engine.allocator.create_order_with_folio({
        "customer_name": normalize_name(data.customer_name),
        "equipment_brand": normalize_equipment_label(data.equipment_brand),
        "equipment_model": normalize_equipment_label(data.equipment_model),
        "reported_issue": data.reported_issue,
        "assigned_technician_id": data.assigned_technician_id,
        "created_by_user_id": created_by.id,
        "priority": OrderPriority(data.priority).value,
        "quote_amount": data.quote_amount,
        "status": OrderStatus.RECEIVED.value,
        "received_at": now,
        "created_at": now,
        "updated_at": now,
    })
    engine.orders.add_history(
        order, None, OrderStatus.RECEIVED, created_by.id, transition_note(None, OrderStatus.RECEIVED)
    )
    order = engine.orders.save(order)

    logger.info(
        "Order created",
        extra=build_log_context(order_id=order.id, folio=order.folio, user_id=created_by.id),
    )
    engine.notifier.on_order_created(order, created_by.id)
    if order.priority == OrderPriority.URGENT.value:
        engine.notifier.on_priority_escalated(order, created_by.id)
    return order


# The _stage_* helpers change the order in memory and queue the notifications
# to send once it is committed. They return whether anything changed.

Trigger = Callable[[], None]


def _commit(engine: OrderEngine, order: Order, changed: bool, triggers: list[Trigger]) -> Order:
    if not changed:
        return order
    order = engine.orders.save(order)
    for fire in triggers:
        fire()
    return order


def _stage_status(
    engine: OrderEngine,
    order: Order,
    new_status: OrderStatus,
    actor_id: UUID | None,
    note: str | None,
    triggers: list[Trigger],
) -> bool:
    previous = apply_transition(order, new_status, engine.now())
    if previous == new_status:
        return False
    engine.orders.add_history(
        order, previous, new_status, actor_id, note or transition_note(previous, new_status)
    )

    def announce() -> None:
        logger.info(
            "Order status changed %s -> %s",
            previous.value,
            new_status.value,
            extra=build_log_context(order_id=order.id, folio=order.folio, user_id=actor_id),
        )
        if new_status == OrderStatus.CANCELED:
            engine.notifier.on_order_canceled(order, previous, actor_id)
        else:
            engine.notifier.on_status_changed(order, previous, new_status, actor_id)

    triggers.append(announce)
    return True


def _stage_technician(
    engine: OrderEngine,
    order: Order,
    technician_id: UUID | None,
    actor_id: UUID | None,
    triggers: list[Trigger],
) -> bool:
    previous = order.assigned_technician_id
    if previous == technician_id:
        return False
    _require_technician(engine, technician_id)
    order.assigned_technician_id = technician_id
    triggers.append(
        lambda: engine.notifier.on_technician_reassigned(order, previous, technician_id, actor_id)
    )
    return True


def _stage_priority(
    engine: OrderEngine,
    order: Order,
    priority: OrderPriority,
    actor_id: UUID | None,
    triggers: list[Trigger],
) -> bool:
    if order.priority == priority.value:
        return False
    order.priority = priority.value
    # Only the escalation into urgent is announced
    if priority == OrderPriority.URGENT:
        triggers.append(lambda: engine.notifier.on_priority_escalated(order, actor_id))
    return True


def _stage_quote(
    engine: OrderEngine,
    order: Order,
    amount: Decimal,
    actor_id: UUID | None,
    triggers: list[Trigger],
) -> bool:
    previous = order.quote_amount
    if previous is not None and Decimal(previous) == Decimal(amount):
        return False
    order.quote_amount = amount
    # The first quote is not a change
    if previous is not None:
        triggers.append(lambda: engine.notifier.on_quote_changed(order, previous, amount, actor_id))
    return True


def change_status(
    engine: OrderEngine,
    order_id: UUID,
    new_status: OrderStatus | str,
    actor_id: UUID | None,
    note: str | None = None,
) -> Order:
    """
    Move an order along the lifecycle graph.

    Same-status requests are a no-op (no history row, no notification).

    Raises:
        OrderNotFoundError
        InvalidTransitionError: edge not in the graph (including any move
            out of delivered/canceled)
    """
    order = get_order(engine, order_id)
    triggers: list[Trigger] = []
    changed = _stage_status(engine, order, OrderStatus(new_status), actor_id, note, triggers)
    return _commit(engine, order, changed, triggers)


def cancel_order(
    engine: OrderEngine,
    order_id: UUID,
    actor_id: UUID | None,
    reason: str | None = None,
) -> Order:
    """Cancel an open order. Raises OrderClosedError if it is already closed."""
    order = get_order(engine, order_id)
    _require_open(order)
    return change_status(engine, order_id, OrderStatus.CANCELED, actor_id, note=reason)


def reassign_technician(
    engine: OrderEngine,
    order_id: UUID,
    technician_id: UUID | None,
    actor_id: UUID | None,
) -> Order:
    order = get_order(engine, order_id)
    _require_open(order)
    triggers: list[Trigger] = []
    changed = _stage_technician(engine, order, technician_id, actor_id, triggers)
    return _commit(engine, order, changed, triggers)


def update_priority(
    engine: OrderEngine,
    order_id: UUID,
    priority: OrderPriority | str,
    actor_id: UUID | None,
) -> Order:
    order = get_order(engine, order_id)
    _require_open(order)
    triggers: list[Trigger] = []
    changed = _stage_priority(engine, order, OrderPriority(priority), actor_id, triggers)
    return _commit(engine, order, changed, triggers)


def update_quote(
    engine: OrderEngine,
    order_id: UUID,
    amount: Decimal,
    actor_id: UUID | None,
) -> Order:
    order = get_order(engine, order_id)
    _require_open(order)
    triggers: list[Trigger] = []
    changed = _stage_quote(engine, order, amount, actor_id, triggers)
    return _commit(engine, order, changed, triggers)


def update_order(
    engine: OrderEngine,
    order_id: UUID,
    data: OrderUpdate,
    actor_id: UUID | None,
) -> Order:
    """
    Apply a partial update as a single commit.

    The status edge and the open/closed check run before anything is staged,
    so a rejected request leaves the order and every inbox untouched. Field
    edits are staged before the status change so one request can, for
    example, set the quote and move to quote_pending.

    Raises:
        OrderNotFoundError
        InvalidTransitionError
        OrderClosedError: field edits on a delivered/canceled order
        InvalidAssigneeError
    """
    fields = data.model_dump(exclude_unset=True)
    order = get_order(engine, order_id)

    new_status = OrderStatus(fields["status"]) if fields.get("status") is not None else None
    if new_status is not None and not is_valid_transition(order.status, new_status):
        raise InvalidTransitionError(OrderStatus(order.status), new_status)
    edits_fields = (
        "assigned_technician_id" in fields
        or fields.get("priority") is not None
        or fields.get("quote_amount") is not None
    )
    if edits_fields:
        _require_open(order)

    triggers: list[Trigger] = []
    changed = False
    # Technician first: it is the only staged edit that can still be rejected
    if "assigned_technician_id" in fields:
        changed |= _stage_technician(
            engine, order, fields["assigned_technician_id"], actor_id, triggers
        )
    if fields.get("priority") is not None:
        changed |= _stage_priority(
            engine, order, OrderPriority(fields["priority"]), actor_id, triggers
        )
    if fields.get("quote_amount") is not None:
        changed |= _stage_quote(engine, order, fields["quote_amount"], actor_id, triggers)
    if new_status is not None:
        changed |= _stage_status(engine, order, new_status, actor_id, fields.get("note"), triggers)
    return _commit(engine, order, changed, triggers)
