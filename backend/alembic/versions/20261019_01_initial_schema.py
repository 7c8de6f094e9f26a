"""initial labdesk schema"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261019_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _stocked_item_columns(table: str) -> list:
    return [
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('item_name', sa.String(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit', sa.String()),
        sa.Column('location', sa.String()),
        sa.Column('reorder_point', sa.Integer()),
        sa.Column('notes', sa.Text()),
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.CheckConstraint('stock >= 0', name=f'ck_{table}_stock_non_negative'),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String()),
        sa.Column('department', sa.String()),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'equipment',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('eq_type', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('model_number', sa.String()),
        sa.Column('serial_number', sa.String()),
        sa.Column('status', sa.String(), nullable=False, server_default='available'),
        sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'bookings',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('equipment_id', sa.UUID(as_uuid=True), sa.ForeignKey('equipment.id'), nullable=False),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('purpose', sa.Text()),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('remarks', sa.Text()),
        sa.Column('reviewed_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.CheckConstraint('start_time < end_time', name='ck_bookings_time_range'),
    )
    op.create_index('ix_bookings_slot', 'bookings', ['equipment_id', 'booking_date', 'status'])
    op.create_table(
        'equipment_usage_sessions',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('booking_id', sa.UUID(as_uuid=True), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('equipment_id', sa.UUID(as_uuid=True), sa.ForeignKey('equipment.id'), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
    )
    op.create_table(
        'lab_inventory',
        *_stocked_item_columns('lab_inventory'),
        sa.Column('category', sa.String()),
        sa.Column('manufacturer', sa.String()),
        sa.Column('lot_number', sa.String()),
        sa.Column('expiration_date', sa.Date()),
        sa.Column('tentative_order_quantity', sa.Integer()),
        sa.Column('supplier', sa.String()),
        sa.Column('distributor_details', sa.Text()),
        sa.Column('contact_number', sa.String()),
    )
    op.create_table(
        'ngs_inventory',
        *_stocked_item_columns('ngs_inventory'),
        sa.Column('manufacturer', sa.String()),
        sa.Column('catalog_number', sa.String()),
        sa.Column('lot_number', sa.String()),
        sa.Column('expiration_date', sa.Date()),
    )
    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('inventory_type', sa.String(), nullable=False),
        sa.Column('item_id', sa.UUID(as_uuid=True), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String()),
        sa.Column('reference_id', sa.String()),
        sa.Column('performed_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('remarks', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_transactions_quantity'),
        sa.UniqueConstraint('inventory_type', 'item_id', 'sequence', name='uq_inventory_transactions_sequence'),
    )
    op.create_index('ix_inventory_transactions_item', 'inventory_transactions', ['inventory_type', 'item_id'])
    op.create_table(
        'inventory_alerts',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('inventory_type', sa.String(), nullable=False),
        sa.Column('item_id', sa.UUID(as_uuid=True), nullable=False),
        sa.Column('item_name', sa.String(), nullable=False),
        sa.Column('alert_type', sa.String(), nullable=False),
        sa.Column('alert_message', sa.String(), nullable=False),
        sa.Column('severity', sa.String(), nullable=False),
        sa.Column('is_resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('resolved_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'notifications',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('category', sa.String()),
        sa.Column('booking_id', sa.UUID(as_uuid=True), sa.ForeignKey('bookings.id')),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'activity_logs',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_type', sa.String()),
        sa.Column('target_id', sa.UUID(as_uuid=True)),
        sa.Column('description', sa.String()),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime()),
    )


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('notifications')
    op.drop_table('inventory_alerts')
    op.drop_index('ix_inventory_transactions_item', table_name='inventory_transactions')
    op.drop_table('inventory_transactions')
    op.drop_table('ngs_inventory')
    op.drop_table('lab_inventory')
    op.drop_table('equipment_usage_sessions')
    op.drop_index('ix_bookings_slot', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('equipment')
    op.drop_table('users')
