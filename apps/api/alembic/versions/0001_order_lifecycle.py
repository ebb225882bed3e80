"""Baseline migration - staff, service orders and notifications

Revision ID: 0001_order_lifecycle
Revises:
Create Date: 2026-02-03

Portable DDL (PostgreSQL and SQLite). The folio unique constraint is the
only concurrency control for folio allocation; keep its name stable, the
insert path classifies conflicts by it.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_order_lifecycle'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, orders, order_status_history and notifications."""

    # ==========================================================================
    # Staff
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    # ==========================================================================
    # Service orders
    # ==========================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('folio', sa.String(32), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('priority', sa.String(20), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('equipment_brand', sa.String(100), nullable=False),
        sa.Column('equipment_model', sa.String(100), nullable=False),
        sa.Column('reported_issue', sa.Text(), nullable=True),
        sa.Column('assigned_technician_id', sa.Uuid(), nullable=True),
        sa.Column('created_by_user_id', sa.Uuid(), nullable=False),
        sa.Column('quote_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('repaired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('folio', name='uq_orders_folio'),
        sa.ForeignKeyConstraint(
            ['assigned_technician_id'], ['users.id'],
            name='fk_orders_assigned_technician_id_users', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['created_by_user_id'], ['users.id'],
            name='fk_orders_created_by_user_id_users',
        ),
    )
    op.create_index('idx_orders_status', 'orders', ['status'])
    op.create_index('idx_orders_technician', 'orders', ['assigned_technician_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('from_status', sa.String(30), nullable=True),
        sa.Column('to_status', sa.String(30), nullable=False),
        sa.Column('changed_by_user_id', sa.Uuid(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_order_status_history'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_order_status_history_order_id_orders', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['changed_by_user_id'], ['users.id'],
            name='fk_order_status_history_changed_by_user_id_users', ondelete='SET NULL',
        ),
    )
    op.create_index('idx_order_history_order', 'order_status_history', ['order_id', 'created_at'])

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('priority', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_notifications'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_notifications_user_id_users', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_notifications_order_id_orders', ondelete='CASCADE',
        ),
    )
    # Inbox listing and unread badge
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'is_read', 'created_at'])
    # Alert dedup lookup
    op.create_index('idx_notif_order_type_unread', 'notifications', ['order_id', 'type', 'is_read'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('order_status_history')
    op.drop_table('orders')
    op.drop_table('users')
