"""Notification triggers for order lifecycle events.

Each ``plan_*`` function maps an event to the dispatch calls it should
produce without touching storage. ``OrderNotifier`` executes plans against a
NotificationDispatcher and never lets a failure escape to the caller.

The acting user is excluded from every recipient set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol
from uuid import UUID

from repairshop.core.structured_logging import build_log_context
from repairshop.db.enums import NotificationPriority, NotificationType, OrderStatus, Role
from repairshop.services.notification_service import NotificationDispatcher
from repairshop.utils.presentation import format_money

logger = logging.getLogger(__name__)

COORDINATION_ROLES = frozenset({Role.COORDINATOR, Role.ADMIN})


class NotifiableOrder(Protocol):
    id: UUID
    folio: str
    equipment_brand: str
    equipment_model: str
    assigned_technician_id: Optional[UUID]
    created_by_user_id: UUID


@dataclass(frozen=True)
class NotificationDispatch:
    """One call into the dispatcher: role-routed or an explicit id list."""

    kind: NotificationType
    title: str
    message: str
    order_id: Optional[UUID] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    roles: frozenset[Role] = frozenset()
    user_ids: tuple[UUID, ...] = ()
    exclude_user_id: Optional[UUID] = None

    @property
    def by_role(self) -> bool:
        return bool(self.roles)


def _equipment(order: NotifiableOrder) -> str:
    return f"{order.equipment_brand} {order.equipment_model}".strip()


def _to_roles(
    order: NotifiableOrder,
    roles: frozenset[Role],
    kind: NotificationType,
    title: str,
    message: str,
    actor_id: Optional[UUID],
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> NotificationDispatch:
    return NotificationDispatch(
        kind=kind,
        title=title,
        message=message,
        order_id=order.id,
        priority=priority,
        roles=roles,
        exclude_user_id=actor_id,
    )


def _to_users(
    order: NotifiableOrder,
    user_ids: list[Optional[UUID]],
    kind: NotificationType,
    title: str,
    message: str,
    actor_id: Optional[UUID],
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> list[NotificationDispatch]:
    """Empty list when every candidate is missing or is the actor."""
    recipients = tuple(u for u in user_ids if u is not None and u != actor_id)
    if not recipients:
        return []
    return [
        NotificationDispatch(
            kind=kind,
            title=title,
            message=message,
            order_id=order.id,
            priority=priority,
            user_ids=recipients,
            exclude_user_id=actor_id,
        )
    ]


# =============================================================================
# Plans
# =============================================================================


def plan_order_created(order: NotifiableOrder, created_by_id: Optional[UUID]) -> list[NotificationDispatch]:
    """Coordinators hear about every new order (except the one who created it)."""
    return [
        _to_roles(
            order,
            frozenset({Role.COORDINATOR}),
            NotificationType.ORDER_CREATED,
            f"New order {order.folio}",
            f"Order {order.folio} was created for {_equipment(order)}",
            created_by_id,
        )
    ]


def plan_status_changed(
    order: NotifiableOrder,
    previous: OrderStatus | str,
    new: OrderStatus | str,
    actor_id: Optional[UUID],
) -> list[NotificationDispatch]:
    """Recipients depend on the status entered. Cancellation has its own plan."""
    previous, new = OrderStatus(previous), OrderStatus(new)
    if previous == new or new == OrderStatus.CANCELED:
        return []

    kind = NotificationType.STATUS_CHANGED
    equipment = _equipment(order)

    if new == OrderStatus.DIAGNOSING:
        return _to_users(
            order,
            [order.assigned_technician_id],
            kind,
            f"Order {order.folio} ready for diagnosis",
            f"Order {order.folio} ({equipment}) is assigned to you for diagnosis",
            actor_id,
        )

    if new == OrderStatus.REPAIRING:
        return _to_users(
            order,
            [order.assigned_technician_id],
            kind,
            f"Order {order.folio} ready for repair",
            f"You can start repairing {order.folio} ({equipment})",
            actor_id,
        )

    if new == OrderStatus.AWAITING_PARTS:
        return [
            _to_roles(
                order,
                frozenset({Role.PARTS_MANAGER, Role.COORDINATOR}),
                kind,
                f"Order {order.folio} needs parts",
                f"Order {order.folio} ({equipment}) is waiting for parts",
                actor_id,
                NotificationPriority.HIGH,
            )
        ]

    if new == OrderStatus.QUOTE_PENDING:
        return [
            _to_roles(
                order,
                COORDINATION_ROLES,
                kind,
                f"Quote pending for {order.folio}",
                f"Quote for {order.folio} ({equipment}) is awaiting customer approval",
                actor_id,
            )
        ]

    if new == OrderStatus.REPAIRED:
        return [
            _to_roles(
                order,
                frozenset({Role.COORDINATOR}),
                kind,
                f"Repair completed: {order.folio}",
                f"Repair of {order.folio} ({equipment}) is complete",
                actor_id,
            ),
            *_to_users(
                order,
                [order.created_by_user_id],
                kind,
                f"Your order {order.folio} was repaired",
                f"Order {order.folio} ({equipment}) you registered has been repaired",
                actor_id,
            ),
        ]

    if new == OrderStatus.READY_FOR_PICKUP:
        return [
            _to_roles(
                order,
                frozenset({Role.COORDINATOR}),
                kind,
                f"Order {order.folio} ready for pickup",
                f"Order {order.folio} ({equipment}) is ready to hand over to the customer",
                actor_id,
            ),
            *_to_users(
                order,
                [order.created_by_user_id],
                kind,
                f"Order {order.folio} ready for pickup",
                f"Order {order.folio} ({equipment}) you registered is ready for pickup",
                actor_id,
            ),
        ]

    if new == OrderStatus.DELIVERED:
        return [
            _to_roles(
                order,
                frozenset({Role.COORDINATOR}),
                kind,
                f"Order {order.folio} delivered",
                f"Order {order.folio} ({equipment}) was delivered to the customer",
                actor_id,
            )
        ]

    return []


def plan_order_canceled(
    order: NotifiableOrder,
    previous: OrderStatus | str,
    actor_id: Optional[UUID],
) -> list[NotificationDispatch]:
    """Technician plus coordination; parts managers too if parts were on order."""
    previous = OrderStatus(previous)
    kind = NotificationType.ORDER_CANCELED
    title = f"Order {order.folio} canceled"
    message = f"Order {order.folio} ({_equipment(order)}) has been canceled"

    plan = _to_users(
        order,
        [order.assigned_technician_id],
        kind,
        title,
        message,
        actor_id,
        NotificationPriority.HIGH,
    )
    plan.append(
        _to_roles(order, COORDINATION_ROLES, kind, title, message, actor_id, NotificationPriority.HIGH)
    )
    if previous == OrderStatus.AWAITING_PARTS:
        plan.append(
            _to_roles(
                order,
                frozenset({Role.PARTS_MANAGER}),
                kind,
                f"Order {order.folio} canceled (parts no longer required)",
                f"Order {order.folio} was waiting for parts and has been canceled; "
                "the parts are no longer required",
                actor_id,
                NotificationPriority.HIGH,
            )
        )
    return plan


def plan_technician_reassigned(
    order: NotifiableOrder,
    previous_technician_id: Optional[UUID],
    new_technician_id: Optional[UUID],
    actor_id: Optional[UUID],
) -> list[NotificationDispatch]:
    if previous_technician_id == new_technician_id:
        return []
    kind = NotificationType.TECHNICIAN_REASSIGNED
    return [
        *_to_users(
            order,
            [previous_technician_id],
            kind,
            f"Order {order.folio} unassigned",
            f"Order {order.folio} has been reassigned to another technician",
            actor_id,
        ),
        *_to_users(
            order,
            [new_technician_id],
            kind,
            f"Order {order.folio} assigned to you",
            f"Order {order.folio} ({_equipment(order)}) has been assigned to you",
            actor_id,
        ),
    ]


def plan_priority_escalated(order: NotifiableOrder, actor_id: Optional[UUID]) -> list[NotificationDispatch]:
    return _to_users(
        order,
        [order.assigned_technician_id],
        NotificationType.PRIORITY_URGENT,
        f"URGENT: order {order.folio}",
        f"Order {order.folio} ({_equipment(order)}) has been marked as urgent",
        actor_id,
        NotificationPriority.URGENT,
    )


def plan_quote_changed(
    order: NotifiableOrder,
    previous_amount: Decimal | int | float,
    new_amount: Decimal | int | float,
    actor_id: Optional[UUID],
) -> list[NotificationDispatch]:
    if Decimal(str(previous_amount)) == Decimal(str(new_amount)):
        return []
    return [
        _to_roles(
            order,
            COORDINATION_ROLES,
            NotificationType.QUOTE_CHANGED,
            f"Quote changed for {order.folio}",
            f"The quote for {order.folio} changed from {format_money(previous_amount)} "
            f"to {format_money(new_amount)}",
            actor_id,
        )
    ]


# =============================================================================
# Executor
# =============================================================================


class OrderNotifier:
    """
    Fire-and-forget execution of trigger plans.

    Failures are logged and counted in ``failed_dispatches``; nothing is
    raised back into the order operation.
    """

    def __init__(self, dispatcher: NotificationDispatcher) -> None:
        self.dispatcher = dispatcher
        self.failed_dispatches = 0

    def on_order_created(self, order: NotifiableOrder, created_by_id: Optional[UUID]) -> None:
        self._fire("order_created", order, lambda: plan_order_created(order, created_by_id))

    def on_status_changed(
        self,
        order: NotifiableOrder,
        previous: OrderStatus | str,
        new: OrderStatus | str,
        actor_id: Optional[UUID],
    ) -> None:
        self._fire(
            "status_changed", order, lambda: plan_status_changed(order, previous, new, actor_id)
        )

    def on_order_canceled(
        self,
        order: NotifiableOrder,
        previous: OrderStatus | str,
        actor_id: Optional[UUID],
    ) -> None:
        self._fire("order_canceled", order, lambda: plan_order_canceled(order, previous, actor_id))

    def on_technician_reassigned(
        self,
        order: NotifiableOrder,
        previous_technician_id: Optional[UUID],
        new_technician_id: Optional[UUID],
        actor_id: Optional[UUID],
    ) -> None:
        self._fire(
            "technician_reassigned",
            order,
            lambda: plan_technician_reassigned(
                order, previous_technician_id, new_technician_id, actor_id
            ),
        )

    def on_priority_escalated(self, order: NotifiableOrder, actor_id: Optional[UUID]) -> None:
        self._fire("priority_escalated", order, lambda: plan_priority_escalated(order, actor_id))

    def on_quote_changed(
        self,
        order: NotifiableOrder,
        previous_amount: Decimal | int | float,
        new_amount: Decimal | int | float,
        actor_id: Optional[UUID],
    ) -> None:
        self._fire(
            "quote_changed",
            order,
            lambda: plan_quote_changed(order, previous_amount, new_amount, actor_id),
        )

    def execute(self, plan: list[NotificationDispatch]) -> int:
        """Run each dispatch; returns how many failed."""
        failures = 0
        for dispatch in plan:
            if dispatch.by_role:
                inserted = self.dispatcher.notify_by_role(
                    dispatch.roles,
                    dispatch.kind,
                    dispatch.title,
                    dispatch.message,
                    priority=dispatch.priority,
                    order_id=dispatch.order_id,
                    exclude_user_id=dispatch.exclude_user_id,
                )
            else:
                inserted = self.dispatcher.notify_users(
                    list(dispatch.user_ids),
                    dispatch.kind,
                    dispatch.title,
                    dispatch.message,
                    priority=dispatch.priority,
                    order_id=dispatch.order_id,
                    exclude_user_id=dispatch.exclude_user_id,
                )
            if inserted is None:
                failures += 1
        return failures

    def _fire(self, event: str, order: NotifiableOrder, build_plan) -> None:
        try:
            failures = self.execute(build_plan())
        except Exception:
            logger.exception(
                "Notification trigger %s failed",
                event,
                extra=build_log_context(order_id=getattr(order, "id", None), job=event),
            )
            failures = 1
        if failures:
            self.failed_dispatches += failures
            logger.warning(
                "Notification trigger %s had %s failed dispatches",
                event,
                failures,
                extra=build_log_context(order_id=getattr(order, "id", None), job=event),
            )
