"""Orders router - /orders endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from repairshop.core.deps import get_current_user, get_order_engine, require_roles
from repairshop.db.enums import OrderStatus, Role, SemaphoreColor
from repairshop.db.models import Order, User
from repairshop.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderListResponse,
    OrderRead,
    OrderStatusHistoryRead,
    OrderUpdate,
    SemaphoreSummary,
)
from repairshop.services import order_service
from repairshop.services.order_lifecycle import derive_semaphore
from repairshop.services.order_service import OrderEngine
from repairshop.utils.presentation import status_label

router = APIRouter()

CANCEL_ROLES = [Role.COORDINATOR, Role.ADMIN]


def _to_read(order: Order, engine: OrderEngine, color: SemaphoreColor | None = None) -> OrderRead:
    read = OrderRead.model_validate(order)
    read.status_label = status_label(order.status)
    read.semaphore = color if color is not None else derive_semaphore(order, engine.now(), engine.semaphore)
    return read


@router.post(
    "",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    data: OrderCreate,
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Register received equipment. Returns 503 if no folio could be allocated."""
    order = order_service.create_order(engine, data, created_by=user)
    return _to_read(order, engine)


@router.get("", response_model=OrderListResponse)
def list_orders(
    semaphore: SemaphoreColor | None = Query(None),
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Active orders with their triage color, oldest first."""
    rows = order_service.list_active_orders(engine, semaphore=semaphore)
    items = [_to_read(order, engine, color) for order, color in rows]
    return OrderListResponse(items=items, total=len(items))


@router.get("/semaphore-summary", response_model=SemaphoreSummary)
def get_semaphore_summary(
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Dashboard counts per triage color."""
    counts = order_service.semaphore_summary(engine)
    return SemaphoreSummary(**counts, total=sum(counts.values()))


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: UUID,
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    return _to_read(order_service.get_order(engine, order_id), engine)


@router.patch("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: UUID,
    data: OrderUpdate,
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """
    Update status, technician, priority or quote.

    409 for transitions outside the lifecycle graph or edits of closed orders.
    Canceling through here needs the same roles as the cancel endpoint.
    """
    if not data.model_fields_set:
        raise HTTPException(status_code=400, detail="No fields to update")
    if data.status == OrderStatus.CANCELED and user.role not in {r.value for r in CANCEL_ROLES}:
        raise HTTPException(
            status_code=403,
            detail=f"Role '{user.role}' not authorized to cancel orders",
        )
    order = order_service.update_order(engine, order_id, data, actor_id=user.id)
    return _to_read(order, engine)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: UUID,
    data: OrderCancel | None = None,
    user: User = Depends(require_roles(CANCEL_ROLES)),
    engine: OrderEngine = Depends(get_order_engine),
):
    order = order_service.cancel_order(
        engine, order_id, actor_id=user.id, reason=data.reason if data else None
    )
    return _to_read(order, engine)


@router.get("/{order_id}/history", response_model=list[OrderStatusHistoryRead])
def get_order_history(
    order_id: UUID,
    user: User = Depends(get_current_user),
    engine: OrderEngine = Depends(get_order_engine),
):
    """Status history, oldest first."""
    return order_service.get_status_history(engine, order_id)
