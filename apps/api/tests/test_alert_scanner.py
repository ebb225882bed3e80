"""Tests for the stale-order alert sweep."""

import uuid
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from repairshop.db.enums import NotificationType, OrderStatus, Role, TERMINAL_ORDER_STATUSES
from repairshop.db.models import Notification
from repairshop.schemas.order import OrderCreate
from repairshop.services import order_service
from repairshop.services.alert_scanner import AlertScanner


def _create(engine, user, **overrides):
    data = OrderCreate(
        customer_name="Juan Perez",
        equipment_brand="Torrey",
        equipment_model="L-EQ 10",
        **overrides,
    )
    return order_service.create_order(engine, data, created_by=user)


def _alerts(db, kind):
    return db.query(Notification).filter(Notification.type == kind.value).all()


@pytest.fixture
def engine(db, clock):
    return order_service.build_engine(db, clock=clock)


# =============================================================================
# RED
# =============================================================================


def test_red_scenario_waits_for_repaired_at(db, engine, clock, coordinator, admin):
    start = clock.now
    order = _create(engine, coordinator)
    # Legacy import: ready for pickup but never stamped as repaired
    order.status = OrderStatus.READY_FOR_PICKUP.value
    db.commit()

    result = engine.scanner.run(now=start + timedelta(days=2))
    assert result.red_alerts == 0
    assert _alerts(db, NotificationType.ALERT_RED) == []

    order.repaired_at = start + timedelta(days=1)
    db.commit()

    result = engine.scanner.run(now=start + timedelta(days=7))
    assert result.red_alerts == 1
    assert result.notifications_created == 1
    assert result.errors == 0
    recipients = {n.user_id for n in _alerts(db, NotificationType.ALERT_RED)}
    assert recipients == {coordinator.id, admin.id}

    # Immediate rescan is suppressed by the unread alerts
    result = engine.scanner.run(now=start + timedelta(days=7))
    assert result.red_alerts == 0
    assert result.notifications_created == 0


def test_red_realerts_after_alert_is_read(db, engine, clock, coordinator):
    start = clock.now
    order = _create(engine, coordinator)
    order.status = OrderStatus.READY_FOR_PICKUP.value
    order.repaired_at = start
    db.commit()
    later = start + timedelta(days=6)

    assert engine.scanner.run(now=later).notifications_created == 1
    assert engine.scanner.run(now=later).notifications_created == 0

    engine.dispatcher.mark_all_read(coordinator.id)

    assert engine.scanner.run(now=later).notifications_created == 1
    assert len(_alerts(db, NotificationType.ALERT_RED)) == 2


def test_red_follows_real_lifecycle(db, engine, clock, coordinator, technician):
    order = _create(engine, coordinator, assigned_technician_id=technician.id)
    for status in ("diagnosing", "repairing", "repaired", "ready_for_pickup"):
        order_service.change_status(engine, order.id, status, technician.id)

    assert engine.scanner.run(now=clock.now + timedelta(days=4)).red_alerts == 0
    assert engine.scanner.run(now=clock.now + timedelta(days=6)).red_alerts == 1


def test_rework_restarts_red_clock(db, engine, clock, coordinator, technician):
    order = _create(engine, coordinator, assigned_technician_id=technician.id)
    for status in ("diagnosing", "repairing", "repaired"):
        order_service.change_status(engine, order.id, status, technician.id)

    clock.advance(days=10)
    for status in ("repairing", "repaired", "ready_for_pickup"):
        order_service.change_status(engine, order.id, status, technician.id)

    assert engine.scanner.run(now=clock.now + timedelta(days=1)).red_alerts == 0


def test_delivered_orders_are_never_scanned(db, engine, clock, coordinator):
    order = _create(engine, coordinator)
    for status in ("diagnosing", "repairing", "repaired", "ready_for_pickup", "delivered"):
        order_service.change_status(engine, order.id, status, coordinator.id)

    result = engine.scanner.run(now=clock.now + timedelta(days=30))

    assert result.red_alerts == 0
    assert _alerts(db, NotificationType.ALERT_RED) == []


# =============================================================================
# YELLOW
# =============================================================================


def test_yellow_goes_to_coordination_and_technician(db, engine, clock, coordinator, admin, technician):
    order = _create(engine, coordinator, assigned_technician_id=technician.id)
    order_service.change_status(engine, order.id, "diagnosing", coordinator.id)

    result = engine.scanner.run(now=clock.now + timedelta(hours=80))

    assert result.yellow_alerts == 1
    assert result.notifications_created == 2
    recipients = {n.user_id for n in _alerts(db, NotificationType.ALERT_YELLOW)}
    assert recipients == {coordinator.id, admin.id, technician.id}


def test_yellow_not_raised_inside_threshold(db, engine, clock, coordinator):
    order = _create(engine, coordinator)
    order_service.change_status(engine, order.id, "diagnosing", coordinator.id)
    order_service.change_status(engine, order.id, "quote_pending", coordinator.id)

    result = engine.scanner.run(now=clock.now + timedelta(hours=70))

    assert result.yellow_alerts == 0


# =============================================================================
# Failure accounting (fake ports)
# =============================================================================


def _fake_order(status, **fields):
    base = dict(
        id=uuid.uuid4(),
        folio="OS-2026-02-001",
        status=status,
        equipment_brand="TORREY",
        equipment_model="L-EQ 10",
        assigned_technician_id=None,
        received_at=None,
        repaired_at=None,
    )
    base.update(fields)
    return SimpleNamespace(**base)


def test_per_order_errors_are_counted_and_sweep_continues(clock):
    now = clock.now
    good = _fake_order(
        "ready_for_pickup", received_at=now - timedelta(days=10), repaired_at=now - timedelta(days=6)
    )
    broken = _fake_order("diagnosing", received_at="not a datetime")
    orders = MagicMock()
    orders.list_by_statuses.return_value = [broken, good]
    notifications = MagicMock()
    notifications.exists_unread.return_value = False
    dispatcher = MagicMock()
    dispatcher.notify_by_role.return_value = 2

    result = AlertScanner(orders, notifications, dispatcher).run(now=now)

    assert result.errors == 1
    assert result.red_alerts == 1
    assert result.notifications_created == 1
    scanned = set(orders.list_by_statuses.call_args.args[0])
    assert not scanned & TERMINAL_ORDER_STATUSES


def test_failed_dispatch_counts_as_error(clock):
    now = clock.now
    stale = _fake_order(
        "ready_for_pickup", received_at=now - timedelta(days=10), repaired_at=now - timedelta(days=6)
    )
    orders = MagicMock()
    orders.list_by_statuses.return_value = [stale]
    notifications = MagicMock()
    notifications.exists_unread.return_value = False
    dispatcher = MagicMock()
    dispatcher.notify_by_role.return_value = None

    result = AlertScanner(orders, notifications, dispatcher).run(now=now)

    assert result.red_alerts == 1
    assert result.notifications_created == 0
    assert result.errors == 1
    assert dispatcher.notify_by_role.call_args.args[0] == {Role.COORDINATOR, Role.ADMIN}
