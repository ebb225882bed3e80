"""
Notification Service - handles in-app notifications.

Provides the dispatcher primitives (create, role/user fan-out, read
acknowledgment, inbox listing). Every write path is best-effort: failures
are logged and reported through the return value, never raised, so a
notification outage cannot abort the order change that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from uuid import UUID

from repairshop.core.structured_logging import build_log_context
from repairshop.db.enums import NotificationPriority, NotificationType, Role
from repairshop.db.models import Notification
from repairshop.services.order_stores import NotificationStore, UserDirectory
from repairshop.utils.datetime_parsing import format_cursor, parse_cursor
from repairshop.utils.pagination import CursorPage, clamp_limit

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Notification primitives over injected store and user directory."""

    def __init__(
        self,
        store: NotificationStore,
        users: UserDirectory,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.users = users
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # Writes (best-effort)
    # =========================================================================

    def create(
        self,
        recipient_id: UUID,
        kind: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        order_id: Optional[UUID] = None,
    ) -> Optional[Notification]:
        """Create a single notification. Returns None if the insert failed."""
        try:
            return self.store.insert(
                self._row(recipient_id, kind, title, message, priority, order_id)
            )
        except Exception:
            logger.exception(
                "Failed to create notification",
                extra=build_log_context(
                    user_id=recipient_id,
                    order_id=order_id,
                    notification_type=NotificationType(kind).value,
                ),
            )
            return None

    def notify_by_role(
        self,
        roles: Iterable[Role],
        kind: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        order_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> Optional[int]:
        """
        Notify every active user holding one of ``roles``.

        Returns the number of notifications inserted (0 when nobody matched;
        the bulk insert is skipped), or None if the write failed.
        """
        role_set = {Role(r) for r in roles}
        try:
            recipients = self.users.active_user_ids(role_set, exclude_user_id=exclude_user_id)
            return self._insert_for(recipients, kind, title, message, priority, order_id)
        except Exception:
            logger.exception(
                "Failed to notify roles %s",
                sorted(r.value for r in role_set),
                extra=build_log_context(
                    order_id=order_id, notification_type=NotificationType(kind).value
                ),
            )
            return None

    def notify_users(
        self,
        user_ids: Iterable[Optional[UUID]],
        kind: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        order_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> Optional[int]:
        """Same contract as notify_by_role over an explicit id list."""
        try:
            recipients: list[UUID] = []
            for user_id in user_ids:
                if user_id is None or user_id == exclude_user_id or user_id in recipients:
                    continue
                recipients.append(user_id)
            return self._insert_for(recipients, kind, title, message, priority, order_id)
        except Exception:
            logger.exception(
                "Failed to notify users",
                extra=build_log_context(
                    order_id=order_id, notification_type=NotificationType(kind).value
                ),
            )
            return None

    def mark_read(self, notification_id: UUID, owner_id: UUID) -> bool:
        """
        Mark one of the owner's notifications read.

        Idempotent: an already-read notification keeps its first read_at and
        still returns True. False if the owner has no such notification.
        """
        try:
            return self.store.mark_read(notification_id, owner_id, self.clock())
        except Exception:
            logger.exception(
                "Failed to mark notification %s read",
                notification_id,
                extra=build_log_context(user_id=owner_id),
            )
            return False

    def mark_all_read(self, owner_id: UUID) -> int:
        """Mark all of the owner's unread notifications read. Returns count updated."""
        try:
            return self.store.mark_all_read(owner_id, self.clock())
        except Exception:
            logger.exception(
                "Failed to mark all notifications read",
                extra=build_log_context(user_id=owner_id),
            )
            return 0

    # =========================================================================
    # Reads
    # =========================================================================

    def list(
        self,
        owner_id: UUID,
        *,
        unread_only: bool = False,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> CursorPage[Notification]:
        """
        Owner's notifications, newest first.

        ``cursor`` is a strict created_at upper bound. One extra row is
        fetched to tell whether another page exists.

        Raises:
            ValueError: malformed cursor
        """
        take = clamp_limit(limit)
        before = parse_cursor(cursor) if cursor else None
        rows = self.store.list_for_user(
            owner_id, unread_only=unread_only, before=before, limit=take + 1
        )
        has_more = len(rows) > take
        items = rows[:take]
        next_cursor = format_cursor(items[-1].created_at) if has_more and items else None
        return CursorPage(items=items, next_cursor=next_cursor)

    def count_unread(self, owner_id: UUID) -> int:
        return self.store.count_unread(owner_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _insert_for(
        self,
        recipients: list[UUID],
        kind: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority,
        order_id: Optional[UUID],
    ) -> int:
        if not recipients:
            return 0
        rows = [
            self._row(user_id, kind, title, message, priority, order_id)
            for user_id in recipients
        ]
        return self.store.insert_many(rows)

    def _row(
        self,
        user_id: UUID,
        kind: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority,
        order_id: Optional[UUID],
    ) -> dict:
        return {
            "user_id": user_id,
            "order_id": order_id,
            "type": NotificationType(kind).value,
            "priority": NotificationPriority(priority).value,
            "title": title[:255],
            "message": message,
            "created_at": self.clock(),
        }
