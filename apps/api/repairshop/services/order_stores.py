"""Storage ports for the order lifecycle engine and their SQLAlchemy adapters.

The allocator, dispatcher and scanner only talk to these protocols, so they
can be exercised against in-memory fakes. The Sql* classes are the
production implementations over a SQLAlchemy session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Protocol, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repairshop.db.enums import NotificationType, OrderStatus, Role
from repairshop.db.models import Notification, Order, OrderStatusHistory, User

logger = logging.getLogger(__name__)

FOLIO_CONSTRAINT = "uq_orders_folio"


# =============================================================================
# Insert outcome
# =============================================================================


class InsertOutcome(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"  # Folio already taken
    OTHER = "other"


@dataclass(frozen=True)
class InsertResult:
    """Classified result of an order insert."""

    outcome: InsertOutcome
    order: Order | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, order: Order) -> "InsertResult":
        return cls(InsertOutcome.SUCCESS, order=order)

    @classmethod
    def conflict(cls, error: Exception | None = None) -> "InsertResult":
        return cls(InsertOutcome.CONFLICT, error=error)

    @classmethod
    def other(cls, error: Exception) -> "InsertResult":
        return cls(InsertOutcome.OTHER, error=error)


# =============================================================================
# Ports
# =============================================================================


class OrderStore(Protocol):
    def get(self, order_id: UUID) -> Order | None: ...

    def list_by_statuses(self, statuses: Iterable[OrderStatus]) -> list[Order]: ...

    def latest_folio(self, prefix: str) -> str | None: ...

    def insert(self, values: dict[str, Any]) -> InsertResult: ...

    def save(self, order: Order) -> Order: ...

    def add_history(
        self,
        order: Order,
        from_status: OrderStatus | None,
        to_status: OrderStatus,
        changed_by_user_id: UUID | None,
        note: str | None = None,
    ) -> OrderStatusHistory: ...


class NotificationStore(Protocol):
    def insert(self, values: dict[str, Any]) -> Notification: ...

    def insert_many(self, rows: Sequence[dict[str, Any]]) -> int: ...

    def mark_read(self, notification_id: UUID, user_id: UUID, read_at: datetime) -> bool: ...

    def mark_all_read(self, user_id: UUID, read_at: datetime) -> int: ...

    def list_for_user(
        self,
        user_id: UUID,
        *,
        unread_only: bool = False,
        before: datetime | None = None,
        limit: int = 20,
    ) -> list[Notification]: ...

    def count_unread(self, user_id: UUID) -> int: ...

    def exists_unread(self, order_id: UUID, notification_type: NotificationType) -> bool: ...


class UserDirectory(Protocol):
    def active_user_ids(
        self,
        roles: Iterable[Role],
        exclude_user_id: UUID | None = None,
    ) -> list[UUID]: ...


# =============================================================================
# SQLAlchemy adapters
# =============================================================================


def is_folio_conflict(error: IntegrityError) -> bool:
    """True when the integrity error comes from the folio unique constraint."""
    constraint_name = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint_name == FOLIO_CONSTRAINT:
        return True
    message = str(error.orig) if error.orig else str(error)
    # SQLite reports the column rather than the constraint name
    return FOLIO_CONSTRAINT in message or "orders.folio" in message


class SqlOrderStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, order_id: UUID) -> Order | None:
        return self.db.get(Order, order_id)

    def list_by_statuses(self, statuses: Iterable[OrderStatus]) -> list[Order]:
        values = [OrderStatus(s).value for s in statuses]
        if not values:
            return []
        stmt = select(Order).where(Order.status.in_(values)).order_by(Order.received_at)
        return list(self.db.scalars(stmt))

    def latest_folio(self, prefix: str) -> str | None:
        # Length first: "...-1000" must sort above "...-999"
        stmt = (
            select(Order.folio)
            .where(Order.folio.startswith(prefix, autoescape=True))
            .order_by(func.length(Order.folio).desc(), Order.folio.desc())
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def insert(self, values: dict[str, Any]) -> InsertResult:
        order = Order(**values)
        self.db.add(order)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if order in self.db:
                self.db.expunge(order)
            if is_folio_conflict(exc):
                return InsertResult.conflict(exc)
            return InsertResult.other(exc)
        except Exception as exc:
            self.db.rollback()
            return InsertResult.other(exc)
        self.db.refresh(order)
        return InsertResult.success(order)

    def save(self, order: Order) -> Order:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def add_history(
        self,
        order: Order,
        from_status: OrderStatus | None,
        to_status: OrderStatus,
        changed_by_user_id: UUID | None,
        note: str | None = None,
    ) -> OrderStatusHistory:
        entry = OrderStatusHistory(
            order_id=order.id,
            from_status=OrderStatus(from_status).value if from_status else None,
            to_status=OrderStatus(to_status).value,
            changed_by_user_id=changed_by_user_id,
            note=note,
        )
        self.db.add(entry)
        return entry


class SqlNotificationStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def insert(self, values: dict[str, Any]) -> Notification:
        notification = Notification(**values)
        self.db.add(notification)
        self._commit()
        self.db.refresh(notification)
        return notification

    def insert_many(self, rows: Sequence[dict[str, Any]]) -> int:
        self.db.add_all([Notification(**row) for row in rows])
        self._commit()
        return len(rows)

    def mark_read(self, notification_id: UUID, user_id: UUID, read_at: datetime) -> bool:
        result = self.db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        self._commit()
        if result.rowcount > 0:
            return True
        # Already read still counts as found for its owner
        owned = self.db.execute(
            select(Notification.id).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        ).first()
        return owned is not None

    def mark_all_read(self, user_id: UUID, read_at: datetime) -> int:
        result = self.db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        self._commit()
        return result.rowcount

    def list_for_user(
        self,
        user_id: UUID,
        *,
        unread_only: bool = False,
        before: datetime | None = None,
        limit: int = 20,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        if before is not None:
            stmt = stmt.where(Notification.created_at < before)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        return list(self.db.scalars(stmt))

    def count_unread(self, user_id: UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        return self.db.scalar(stmt) or 0

    def exists_unread(self, order_id: UUID, notification_type: NotificationType) -> bool:
        stmt = (
            select(Notification.id)
            .where(
                Notification.order_id == order_id,
                Notification.type == NotificationType(notification_type).value,
                Notification.is_read.is_(False),
            )
            .limit(1)
        )
        return self.db.scalars(stmt).first() is not None


class SqlUserDirectory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def active_user_ids(
        self,
        roles: Iterable[Role],
        exclude_user_id: UUID | None = None,
    ) -> list[UUID]:
        role_values = sorted({Role(r).value for r in roles})
        if not role_values:
            return []
        stmt = select(User.id).where(
            User.role.in_(role_values),
            User.is_active.is_(True),
        )
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return list(self.db.scalars(stmt.order_by(User.created_at)))
