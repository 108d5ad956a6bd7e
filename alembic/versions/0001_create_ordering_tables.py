"""create ordering tables

Revision ID: 0001_create_ordering_tables
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_ordering_tables'
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUS = sa.Enum('Pending', 'Preparing', 'Ready', 'Served', name='order_status', native_enum=False)


def upgrade():
    op.create_table(
        'tables',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('table_number', sa.String(20), nullable=False),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('unique_code', sa.String(6), nullable=True),
        sa.Column('floor', sa.String(50), nullable=False, server_default='Ground Floor'),
        sa.Column('seating_capacity', sa.Integer(), nullable=False, server_default='4'),
        sa.CheckConstraint(
            "(locked AND unique_code IS NOT NULL) OR (NOT locked AND unique_code IS NULL)",
            name='ck_tables_lock_code',
        ),
    )
    op.create_index('ix_tables_id', 'tables', ['id'])
    op.create_index('ix_tables_table_number', 'tables', ['table_number'], unique=True)
    op.create_index('ix_tables_unique_code', 'tables', ['unique_code'])

    op.create_table(
        'menu_items',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint('price > 0', name='ck_menu_items_price_positive'),
    )
    op.create_index('ix_menu_items_id', 'menu_items', ['id'])
    op.create_index('ix_menu_items_name', 'menu_items', ['name'])
    op.create_index('ix_menu_items_category', 'menu_items', ['category'])

    op.create_table(
        'orders',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('table_id', sa.String(32), sa.ForeignKey('tables.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unique_code', sa.String(6), nullable=False),
        sa.Column('status', ORDER_STATUS, nullable=False, server_default='Pending'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_table_id', 'orders', ['table_id'])
    op.create_index('ix_orders_unique_code', 'orders', ['unique_code'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('order_id', sa.String(32), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('menu_id', sa.String(32), sa.ForeignKey('menu_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.UniqueConstraint('order_id', 'menu_id', name='uq_order_items_order_menu'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('mobile_number', sa.String(20), nullable=False),
        sa.Column('order_id', sa.String(32), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_mobile_number', 'users', ['mobile_number'])
    op.create_index('ix_users_order_id', 'users', ['order_id'])


def downgrade():
    op.drop_table('users')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('menu_items')
    op.drop_table('tables')
