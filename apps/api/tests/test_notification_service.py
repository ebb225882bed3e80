"""Tests for the notification dispatcher primitives."""

import uuid
from unittest.mock import MagicMock

import pytest

from repairshop.db.enums import NotificationPriority, NotificationType, Role
from repairshop.db.models import Notification
from repairshop.services.notification_service import NotificationDispatcher
from repairshop.services.order_stores import SqlNotificationStore, SqlUserDirectory


def mock_dispatcher(recipients=None):
    store = MagicMock()
    users = MagicMock()
    users.active_user_ids.return_value = recipients or []
    store.insert_many.side_effect = lambda rows: len(rows)
    return NotificationDispatcher(store, users), store, users


# =============================================================================
# Fan-out (mocked ports)
# =============================================================================


def test_notify_by_role_with_no_recipients_skips_insert():
    dispatcher, store, users = mock_dispatcher(recipients=[])

    inserted = dispatcher.notify_by_role(
        [Role.PARTS_MANAGER], NotificationType.STATUS_CHANGED, "t", "m"
    )

    assert inserted == 0
    store.insert_many.assert_not_called()
    store.insert.assert_not_called()


def test_notify_by_role_passes_exclusion_to_directory():
    actor = uuid.uuid4()
    other = uuid.uuid4()
    dispatcher, store, users = mock_dispatcher(recipients=[other])

    inserted = dispatcher.notify_by_role(
        [Role.COORDINATOR, Role.ADMIN],
        NotificationType.ORDER_CREATED,
        "New order",
        "Order created",
        exclude_user_id=actor,
    )

    assert inserted == 1
    roles, = users.active_user_ids.call_args.args
    assert roles == {Role.COORDINATOR, Role.ADMIN}
    assert users.active_user_ids.call_args.kwargs == {"exclude_user_id": actor}
    rows = store.insert_many.call_args.args[0]
    assert [row["user_id"] for row in rows] == [other]
    assert rows[0]["type"] == "order_created"
    assert rows[0]["priority"] == "normal"


def test_notify_users_drops_missing_duplicate_and_excluded_ids():
    keep = uuid.uuid4()
    actor = uuid.uuid4()
    dispatcher, store, _ = mock_dispatcher()

    inserted = dispatcher.notify_users(
        [keep, None, actor, keep],
        NotificationType.PRIORITY_URGENT,
        "URGENT",
        "m",
        priority=NotificationPriority.URGENT,
        exclude_user_id=actor,
    )

    assert inserted == 1
    rows = store.insert_many.call_args.args[0]
    assert [row["user_id"] for row in rows] == [keep]
    assert rows[0]["priority"] == "urgent"


def test_notify_users_only_excluded_recipient_is_noop():
    actor = uuid.uuid4()
    dispatcher, store, _ = mock_dispatcher()

    assert dispatcher.notify_users([actor], NotificationType.STATUS_CHANGED, "t", "m",
                                   exclude_user_id=actor) == 0
    store.insert_many.assert_not_called()


def test_title_is_truncated_to_column_size():
    dispatcher, store, _ = mock_dispatcher()
    dispatcher.notify_users([uuid.uuid4()], NotificationType.STATUS_CHANGED, "x" * 400, "m")
    assert len(store.insert_many.call_args.args[0][0]["title"]) == 255


# =============================================================================
# Best-effort writes
# =============================================================================


def test_write_failures_are_reported_not_raised(caplog):
    dispatcher, store, users = mock_dispatcher(recipients=[uuid.uuid4()])
    store.insert_many.side_effect = RuntimeError("db down")
    store.insert.side_effect = RuntimeError("db down")
    store.mark_read.side_effect = RuntimeError("db down")
    store.mark_all_read.side_effect = RuntimeError("db down")

    assert dispatcher.notify_by_role([Role.COORDINATOR], NotificationType.ALERT_RED, "t", "m") is None
    assert dispatcher.notify_users([uuid.uuid4()], NotificationType.ALERT_RED, "t", "m") is None
    assert dispatcher.create(uuid.uuid4(), NotificationType.ALERT_RED, "t", "m") is None
    assert dispatcher.mark_read(uuid.uuid4(), uuid.uuid4()) is False
    assert dispatcher.mark_all_read(uuid.uuid4()) == 0
    assert "Failed to notify roles" in caplog.text


def test_directory_failure_is_reported_not_raised():
    dispatcher, store, users = mock_dispatcher()
    users.active_user_ids.side_effect = RuntimeError("db down")

    assert dispatcher.notify_by_role([Role.ADMIN], NotificationType.ALERT_RED, "t", "m") is None
    store.insert_many.assert_not_called()


# =============================================================================
# SQL-backed behavior
# =============================================================================


@pytest.fixture
def dispatcher(db, ticking_clock):
    return NotificationDispatcher(SqlNotificationStore(db), SqlUserDirectory(db), clock=ticking_clock)


def test_notify_by_role_skips_inactive_and_other_roles(db, dispatcher, make_user):
    active = make_user(Role.COORDINATOR)
    make_user(Role.COORDINATOR, is_active=False)
    make_user(Role.TECHNICIAN)

    inserted = dispatcher.notify_by_role([Role.COORDINATOR], NotificationType.ORDER_CREATED, "t", "m")

    assert inserted == 1
    assert [n.user_id for n in db.query(Notification).all()] == [active.id]


def test_mark_read_requires_ownership_and_never_reverts(db, dispatcher, coordinator, technician):
    notification = dispatcher.create(coordinator.id, NotificationType.ORDER_CREATED, "t", "m")

    assert dispatcher.mark_read(notification.id, technician.id) is False
    db.refresh(notification)
    assert notification.is_read is False

    assert dispatcher.mark_read(notification.id, coordinator.id) is True
    db.refresh(notification)
    assert notification.is_read is True
    first_read_at = notification.read_at

    # Already read: still found, read_at keeps its first value
    assert dispatcher.mark_read(notification.id, coordinator.id) is True
    db.refresh(notification)
    assert notification.read_at == first_read_at


def test_mark_all_read_only_touches_owner(db, dispatcher, coordinator, admin):
    for _ in range(3):
        dispatcher.create(coordinator.id, NotificationType.STATUS_CHANGED, "t", "m")
    dispatcher.create(admin.id, NotificationType.STATUS_CHANGED, "t", "m")

    assert dispatcher.mark_all_read(coordinator.id) == 3
    assert dispatcher.count_unread(coordinator.id) == 0
    assert dispatcher.count_unread(admin.id) == 1
    assert dispatcher.mark_all_read(coordinator.id) == 0


def test_list_is_newest_first_with_cursor(dispatcher, coordinator):
    titles = [f"n{i}" for i in range(5)]
    for title in titles:
        dispatcher.create(coordinator.id, NotificationType.STATUS_CHANGED, title, "m")

    first = dispatcher.list(coordinator.id, limit=2)
    assert [n.title for n in first.items] == ["n4", "n3"]
    assert first.has_more

    second = dispatcher.list(coordinator.id, limit=2, cursor=first.next_cursor)
    assert [n.title for n in second.items] == ["n2", "n1"]

    last = dispatcher.list(coordinator.id, limit=2, cursor=second.next_cursor)
    assert [n.title for n in last.items] == ["n0"]
    assert last.next_cursor is None


def test_list_unread_only(dispatcher, coordinator):
    read = dispatcher.create(coordinator.id, NotificationType.STATUS_CHANGED, "read", "m")
    dispatcher.create(coordinator.id, NotificationType.STATUS_CHANGED, "unread", "m")
    dispatcher.mark_read(read.id, coordinator.id)

    page = dispatcher.list(coordinator.id, unread_only=True)

    assert [n.title for n in page.items] == ["unread"]


def test_list_rejects_malformed_cursor(dispatcher, coordinator):
    with pytest.raises(ValueError):
        dispatcher.list(coordinator.id, cursor="yesterday")
