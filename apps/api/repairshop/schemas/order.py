"""Pydantic schemas for service orders."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from repairshop.db.enums import OrderPriority, OrderStatus, SemaphoreColor


class OrderCreate(BaseModel):
    """Request schema for registering received equipment."""

    customer_name: str = Field(..., min_length=1, max_length=255)
    equipment_brand: str = Field(..., min_length=1, max_length=100)
    equipment_model: str = Field(..., min_length=1, max_length=100)
    reported_issue: str | None = None

    assigned_technician_id: UUID | None = None
    priority: OrderPriority = OrderPriority.NORMAL
    quote_amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)

    @field_validator("customer_name", "equipment_brand", "equipment_model")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class OrderUpdate(BaseModel):
    """Partial update. ``note`` is stored on the history row of a status change."""

    status: OrderStatus | None = None
    note: str | None = None
    assigned_technician_id: UUID | None = None
    priority: OrderPriority | None = None
    quote_amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)


class OrderCancel(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class OrderRead(BaseModel):
    """Response schema for a single order."""

    id: UUID
    folio: str
    status: OrderStatus
    status_label: str = ""
    priority: OrderPriority
    semaphore: SemaphoreColor | None = None

    customer_name: str
    equipment_brand: str
    equipment_model: str
    reported_issue: str | None

    assigned_technician_id: UUID | None
    created_by_user_id: UUID
    quote_amount: Decimal | None

    received_at: datetime
    repaired_at: datetime | None
    delivered_at: datetime | None
    canceled_at: datetime | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    items: list[OrderRead]
    total: int


class OrderStatusHistoryRead(BaseModel):
    id: UUID
    from_status: OrderStatus | None
    to_status: OrderStatus
    changed_by_user_id: UUID | None
    note: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class SemaphoreSummary(BaseModel):
    """Count of active orders per triage color."""

    red: int = 0
    orange: int = 0
    yellow: int = 0
    blue: int = 0
    green: int = 0
    total: int = 0
