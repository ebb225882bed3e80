"""Periodic sweep that raises stale-order alerts.

Entry point for the scheduled order-alerts job (internal endpoint and CLI).
RED means a repaired order has waited too long for pickup; YELLOW means
diagnosis or quote approval is taking too long. An alert is skipped while an
unread alert of the same kind already exists for the order, so re-running
the sweep is cheap and quiet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from repairshop.core.structured_logging import build_log_context
from repairshop.db.enums import (
    ACTIVE_ORDER_STATUSES,
    NotificationPriority,
    NotificationType,
    Role,
    SemaphoreColor,
)
from repairshop.db.models import Order
from repairshop.services.notification_service import NotificationDispatcher
from repairshop.services.order_lifecycle import (
    DEFAULT_SEMAPHORE_CONFIG,
    SemaphoreConfig,
    derive_semaphore,
)
from repairshop.services.order_stores import NotificationStore, OrderStore
from repairshop.utils.datetime_parsing import as_utc

logger = logging.getLogger(__name__)

ALERT_ROLES = frozenset({Role.COORDINATOR, Role.ADMIN})


@dataclass
class AlertScanResult:
    red_alerts: int = 0
    yellow_alerts: int = 0
    notifications_created: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {
            "red_alerts": self.red_alerts,
            "yellow_alerts": self.yellow_alerts,
            "notifications_created": self.notifications_created,
            "errors": self.errors,
        }


class AlertScanner:
    def __init__(
        self,
        orders: OrderStore,
        notifications: NotificationStore,
        dispatcher: NotificationDispatcher,
        config: SemaphoreConfig = DEFAULT_SEMAPHORE_CONFIG,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.orders = orders
        self.notifications = notifications
        self.dispatcher = dispatcher
        self.config = config
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self, now: Optional[datetime] = None) -> AlertScanResult:
        """
        Scan active orders once.

        Never raises for a single bad order; failures are logged and counted
        in ``errors``.
        """
        now = now or self.clock()
        result = AlertScanResult()

        for order in self.orders.list_by_statuses(ACTIVE_ORDER_STATUSES):
            try:
                self._scan_order(order, now, result)
            except Exception:
                result.errors += 1
                logger.exception(
                    "Alert scan failed for order",
                    extra=build_log_context(
                        order_id=order.id, folio=order.folio, job="order_alerts"
                    ),
                )

        logger.info(
            "Order alert scan finished: %s red, %s yellow, %s created, %s errors",
            result.red_alerts,
            result.yellow_alerts,
            result.notifications_created,
            result.errors,
            extra=build_log_context(job="order_alerts"),
        )
        return result

    def _scan_order(self, order: Order, now: datetime, result: AlertScanResult) -> None:
        color = derive_semaphore(order, now, self.config)
        if color == SemaphoreColor.RED:
            if self.notifications.exists_unread(order.id, NotificationType.ALERT_RED):
                return
            result.red_alerts += 1
            days = (as_utc(now) - as_utc(order.repaired_at)).days
            self._record(
                result,
                self.dispatcher.notify_by_role(
                    ALERT_ROLES,
                    NotificationType.ALERT_RED,
                    f"Order {order.folio} waiting for pickup",
                    f"Order {order.folio} ({order.equipment_brand} {order.equipment_model}) "
                    f"was repaired {days} days ago and has not been picked up",
                    priority=NotificationPriority.HIGH,
                    order_id=order.id,
                ),
            )
        elif color == SemaphoreColor.YELLOW:
            if self.notifications.exists_unread(order.id, NotificationType.ALERT_YELLOW):
                return
            result.yellow_alerts += 1
            hours = int((as_utc(now) - as_utc(order.received_at)).total_seconds() // 3600)
            title = f"Order {order.folio} delayed"
            message = (
                f"Order {order.folio} has been in {order.status} for {hours} hours "
                "since it was received"
            )
            self._record(
                result,
                self.dispatcher.notify_by_role(
                    ALERT_ROLES,
                    NotificationType.ALERT_YELLOW,
                    title,
                    message,
                    order_id=order.id,
                ),
            )
            if order.assigned_technician_id is not None:
                self._record(
                    result,
                    self.dispatcher.notify_users(
                        [order.assigned_technician_id],
                        NotificationType.ALERT_YELLOW,
                        title,
                        message,
                        order_id=order.id,
                    ),
                )

    @staticmethod
    def _record(result: AlertScanResult, inserted: Optional[int]) -> None:
        if inserted is None:
            result.errors += 1
        elif inserted > 0:
            result.notifications_created += 1
