"""initial venue schema

Revision ID: c0a1b2d3e4f5
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete venue back-office schema from scratch:
- clients, staff_members: thin directory tables referenced by the core
- pricelist_categories, pricelist_items: catalog with stored stock
- inventory_movements: append-only stock ledger
- game_tables, bookings: rentable tables and their reservations
- orders, order_items: bar/kitchen orders with price snapshots
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c0a1b2d3e4f5'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    """
    Create all tables.

    WHY: current_stock on pricelist_items must always equal initial_stock plus
    the sum of inventory_movements for that item, so both tables ship together
    with their non-negative and non-zero CHECK constraints.
    """

    # ============================================================================
    # clients / staff_members: directory tables
    # ============================================================================
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone_number'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'staff_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('position', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'pricelist_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'pricelist_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('item_type', sa.String(length=16), nullable=False, server_default='BAR'),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('tracks_stock', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('initial_stock', sa.Integer(), nullable=True),
        sa.Column('current_stock', sa.Integer(), nullable=True),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['pricelist_categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sa.CheckConstraint('price_cents > 0', name='ck_pricelist_items_price_positive'),
        sa.CheckConstraint('current_stock IS NULL OR current_stock >= 0',
                           name='ck_pricelist_items_stock_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_pricelist_items_category_name', 'pricelist_items', ['category_id', 'name'])

    # ============================================================================
    # inventory_movements: append-only stock ledger
    # ============================================================================
    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pricelist_item_id', sa.Integer(), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=True),
        sa.Column('movement_type', sa.String(length=32), nullable=False),
        sa.Column('quantity_changed', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('movement_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['pricelist_item_id'], ['pricelist_items.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staff_members.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity_changed <> 0', name='ck_invmv_quantity_nonzero'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invmv_item_date', 'inventory_movements', ['pricelist_item_id', 'movement_date'])
    op.create_index('ix_invmv_type_date', 'inventory_movements', ['movement_type', 'movement_date'])

    # ============================================================================
    # game_tables / bookings
    # ============================================================================
    op.create_table(
        'game_tables',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('hourly_rate_cents', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('table_id', sa.Integer(), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('number_of_guests', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='confirmed'),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('total_price_cents', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['table_id'], ['game_tables.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staff_members.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('end_time > start_time', name='ck_bookings_end_after_start'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_bookings_table_window', 'bookings', ['table_id', 'start_time', 'end_time'])
    op.create_index('ix_bookings_status_start', 'bookings', ['status', 'start_time'])

    # ============================================================================
    # orders / order_items
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('staff_id', sa.Integer(), nullable=False),
        sa.Column('table_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('order_time', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staff_members.id']),
        sa.ForeignKeyConstraint(['table_id'], ['game_tables.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('final_amount_cents >= 0', name='ck_orders_final_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_status_time', 'orders', ['status', 'order_time'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('pricelist_item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['pricelist_item_id'], ['pricelist_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('order_items')
    op.drop_index('ix_orders_status_time', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_bookings_status_start', table_name='bookings')
    op.drop_index('ix_bookings_table_window', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('game_tables')
    op.drop_index('ix_invmv_type_date', table_name='inventory_movements')
    op.drop_index('ix_invmv_item_date', table_name='inventory_movements')
    op.drop_table('inventory_movements')
    op.drop_index('ix_pricelist_items_category_name', table_name='pricelist_items')
    op.drop_table('pricelist_items')
    op.drop_table('pricelist_categories')
    op.drop_table('staff_members')
    op.drop_table('clients')
