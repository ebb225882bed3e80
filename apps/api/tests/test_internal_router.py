"""Tests for internal scheduled endpoints."""

from datetime import datetime, timedelta, timezone

import pytest

from repairshop.core.config import settings
from repairshop.db.enums import OrderStatus
from repairshop.db.models import Notification
from repairshop.schemas.order import OrderCreate
from repairshop.services import order_service


def _stale_pickup(db, user):
    engine = order_service.build_engine(db)
    order = order_service.create_order(
        engine,
        OrderCreate(customer_name="Ana", equipment_brand="Torrey", equipment_model="L-EQ 10"),
        created_by=user,
    )
    order.status = OrderStatus.READY_FOR_PICKUP.value
    order.repaired_at = datetime.now(timezone.utc) - timedelta(days=8)
    db.commit()
    return order


@pytest.mark.asyncio
async def test_order_alerts_requires_secret(client):
    missing = await client.post("/internal/scheduled/order-alerts")
    assert missing.status_code == 422

    wrong = await client.post(
        "/internal/scheduled/order-alerts", headers={"X-Internal-Secret": "nope"}
    )
    assert wrong.status_code == 403


@pytest.mark.asyncio
async def test_order_alerts_not_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "")
    response = await client.post(
        "/internal/scheduled/order-alerts", headers={"X-Internal-Secret": "anything"}
    )
    assert response.status_code == 501


@pytest.mark.asyncio
async def test_order_alerts_sweep_is_idempotent(client, db, coordinator, admin):
    _stale_pickup(db, coordinator)
    headers = {"X-Internal-Secret": "test-internal-secret"}

    first = await client.post("/internal/scheduled/order-alerts", headers=headers)
    assert first.status_code == 200
    assert first.json() == {
        "red_alerts": 1,
        "yellow_alerts": 0,
        "notifications_created": 1,
        "errors": 0,
    }

    second = await client.post("/internal/scheduled/order-alerts", headers=headers)
    assert second.json()["notifications_created"] == 0

    db.expire_all()
    assert db.query(Notification).filter(Notification.type == "alert_red").count() == 2
