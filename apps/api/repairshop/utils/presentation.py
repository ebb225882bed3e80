"""Presentation helpers for turning internal values into human-friendly labels."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from repairshop.db.enums import OrderStatus

STATUS_LABELS: dict[str, str] = {
    OrderStatus.RECEIVED.value: "Received",
    OrderStatus.DIAGNOSING.value: "Diagnosing",
    OrderStatus.AWAITING_PARTS.value: "Awaiting parts",
    OrderStatus.QUOTE_PENDING.value: "Quote pending",
    OrderStatus.REPAIRING.value: "Repairing",
    OrderStatus.REPAIRED.value: "Repaired",
    OrderStatus.READY_FOR_PICKUP.value: "Ready for pickup",
    OrderStatus.DELIVERED.value: "Delivered",
    OrderStatus.CANCELED.value: "Canceled",
}


def status_label(status: OrderStatus | str | None) -> str:
    """Human label for an order status ("ready_for_pickup" -> "Ready for pickup")."""
    if status is None:
        return ""
    value = status.value if isinstance(status, OrderStatus) else str(status)
    if value in STATUS_LABELS:
        return STATUS_LABELS[value]
    return value.replace("_", " ").strip().capitalize()


def format_money(amount: Decimal | int | float | None, currency_symbol: str = "$") -> str:
    """
    Format an amount as currency with thousands separators.

    Examples:
        1500 -> "$1,500.00"
        Decimal("99.5") -> "$99.50"
    """
    if amount is None:
        return "-"
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol}{abs(value):,.2f}"
