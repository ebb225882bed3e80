"""SQLAlchemy ORM models for staff, service orders and notifications."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairshop.db.base import Base
from repairshop.db.enums import NotificationPriority, OrderPriority, OrderStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Staff
# =============================================================================


class User(Base):
    """
    Shop staff member.

    Authentication is delegated to the outer application; the core only
    needs the role and the active flag for notification routing.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


# =============================================================================
# Service Orders
# =============================================================================


class Order(Base):
    """
    A repair service order.

    Folio format: OS-{year}-{month}-{seq}, seq zero-padded to 3 digits and
    allowed to grow past 999. Unique across the table; the unique constraint
    is the only concurrency control for folio allocation.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("folio", name="uq_orders_folio"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_technician", "assigned_technician_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    folio: Mapped[str] = mapped_column(String(32), nullable=False)

    status: Mapped[str] = mapped_column(
        String(30), default=OrderStatus.RECEIVED.value, nullable=False
    )
    priority: Mapped[str] = mapped_column(
        String(20), default=OrderPriority.NORMAL.value, nullable=False
    )

    # Customer and equipment
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    equipment_brand: Mapped[str] = mapped_column(String(100), nullable=False)
    equipment_model: Mapped[str] = mapped_column(String(100), nullable=False)
    reported_issue: Mapped[str | None] = mapped_column(Text, nullable=True)

    # People
    assigned_technician_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    # Quote
    quote_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # Lifecycle timestamps
    received_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    repaired_at: Mapped[datetime | None] = mapped_column(nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    technician: Mapped["User"] = relationship(foreign_keys=[assigned_technician_id])
    created_by: Mapped["User"] = relationship(foreign_keys=[created_by_user_id])
    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at",
    )


class OrderStatusHistory(Base):
    """Audit trail of status changes (one row per transition)."""
    __tablename__ = "order_status_history"
    __table_args__ = (
        Index("idx_order_history_order", "order_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="status_history")


# =============================================================================
# Notifications
# =============================================================================


class Notification(Base):
    """
    In-app notifications for staff.

    Append-only except is_read/read_at, which flip once and never revert.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notif_user_unread", "user_id", "is_read", "created_at"),
        Index("idx_notif_order_type_unread", "order_id", "type", "is_read"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True
    )

    # Notification type (enum)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), default=NotificationPriority.NORMAL.value, nullable=False
    )

    # Content
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Read status
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship()
    order: Mapped["Order"] = relationship()
