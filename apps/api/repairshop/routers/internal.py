"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (systemd timer, GH Actions, etc).
"""

import logging

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel

from repairshop.core.config import settings
from repairshop.core.structured_logging import build_log_context
from repairshop.db.session import SessionLocal
from repairshop.services.order_service import build_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


class OrderAlertsResponse(BaseModel):
    red_alerts: int
    yellow_alerts: int
    notifications_created: int
    errors: int


@router.post("/order-alerts", response_model=OrderAlertsResponse)
def order_alerts(x_internal_secret: str = Header(...)):
    """
    Sweep for stale orders (typically hourly).

    Creates alerts for:
    - ALERT_RED: repaired, waiting for pickup past the red threshold
    - ALERT_YELLOW: diagnosis/quote stalled past the yellow threshold

    Safe to call repeatedly: an unread alert suppresses a new one.
    """
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = build_engine(db).scanner.run()

    if result.errors:
        logger.warning(
            "Order alert sweep finished with %s errors",
            result.errors,
            extra=build_log_context(job="order_alerts"),
        )
    return OrderAlertsResponse(**result.as_dict())
