"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    order_id: str | None = None,
    folio: str | None = None,
    notification_type: str | None = None,
    job: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict for ``logger.*(..., extra=...)``."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if order_id:
        context["order_id"] = str(order_id)
    if folio:
        context["folio"] = folio
    if notification_type:
        context["notification_type"] = notification_type
    if job:
        context["job"] = job
    return context
