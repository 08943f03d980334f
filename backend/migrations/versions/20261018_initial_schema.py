"""Initial BMS POS schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
1. employees, system_settings, user_activities
2. products, product_batches
3. sales, sale_items, returns, return_items
4. stock_adjustments
5. inventory_counts (single IN_PROGRESS partial index), inventory_count_items
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. EMPLOYEES / SETTINGS / AUDIT
    # ==========================================================================
    op.create_table('employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_code', sa.String(length=10), nullable=False),
        sa.Column('pin_hash', sa.String(length=60), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_employees_role_active', 'employees', ['role', 'is_active'])

    op.create_table('system_settings',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('enable_returns', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('require_manager_approval_for_returns', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('restock_returned_items', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('allow_defective_item_returns', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('return_time_limit_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('return_manager_approval_cents', sa.Integer(), nullable=False, server_default='100000'),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_by_employee_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('return_time_limit_days >= 0', name='ck_settings_return_days'),
        sa.CheckConstraint('return_manager_approval_cents >= 0', name='ck_settings_return_threshold'),
        sa.CheckConstraint('id = 1', name='ck_settings_single_row'),
        sa.ForeignKeyConstraint(['updated_by_employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('user_activities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('user_name', sa.String(length=100), nullable=False),
        sa.Column('action', sa.String(length=200), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('action_type', sa.String(length=20), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_user_activities_user_id', 'user_activities', ['user_id'])
    op.create_index('ix_user_activities_action_type', 'user_activities', ['action_type'])
    op.create_index('ix_user_activities_occurred_at', 'user_activities', ['occurred_at'])
    op.create_index('ix_user_activities_user_occurred', 'user_activities', ['user_id', 'occurred_at'])
    op.create_index('ix_user_activities_entity', 'user_activities', ['entity_type', 'entity_id'])

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=False, server_default='pcs'),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock_level', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('price_cents > 0', name='ck_products_price_positive'),
        sa.CheckConstraint('cost_cents >= 0', name='ck_products_cost_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_active', 'products', ['is_active'])

    op.create_table('product_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_number', sa.String(length=100), nullable=True),
        sa.Column('quantity_received', sa.Integer(), nullable=False),
        sa.Column('cost_per_unit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('received_by_employee_id', sa.Integer(), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity_received > 0', name='ck_product_batches_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['received_by_employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_batches_product_id', 'product_batches', ['product_id'])

    # ==========================================================================
    # 3. SALES AND RETURNS
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=32), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_reason', sa.String(length=255), nullable=True),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('change_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='Cash'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Completed'),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_employee_id', 'sales', ['employee_id'])
    op.create_index('ix_sales_sale_date', 'sales', ['sale_date'])
    op.create_index('ix_sales_status_date', 'sales', ['status', 'sale_date'])

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('product_barcode', sa.String(length=50), nullable=True),
        sa.Column('returned_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('quantity >= 1', name='ck_sale_items_quantity_positive'),
        sa.CheckConstraint('returned_quantity >= 0', name='ck_sale_items_returned_non_negative'),
        sa.CheckConstraint('returned_quantity <= quantity', name='ck_sale_items_returned_within_sold'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    op.create_table('returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_number', sa.String(length=32), nullable=False),
        sa.Column('original_sale_id', sa.Integer(), nullable=False),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Completed'),
        sa.Column('total_refund_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processed_by_employee_id', sa.Integer(), nullable=False),
        sa.Column('approved_by_employee_id', sa.Integer(), nullable=True),
        sa.Column('manager_approval_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['original_sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['processed_by_employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['approved_by_employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('return_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_returns_original_sale_id', 'returns', ['original_sale_id'])
    op.create_index('ix_returns_sale_date', 'returns', ['original_sale_id', 'return_date'])

    op.create_table('return_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('original_sale_item_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('return_quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('condition', sa.String(length=16), nullable=False, server_default='good'),
        sa.Column('reason', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('restocked_to_inventory', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint('return_quantity > 0', name='ck_return_items_quantity_positive'),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id']),
        sa.ForeignKeyConstraint(['original_sale_item_id'], ['sale_items.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_return_items_return_id', 'return_items', ['return_id'])
    op.create_index('ix_return_items_original_sale_item_id', 'return_items', ['original_sale_item_id'])
    op.create_index('ix_return_items_product_id', 'return_items', ['product_id'])

    # ==========================================================================
    # 4. STOCK ADJUSTMENTS
    # ==========================================================================
    op.create_table('stock_adjustments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('adjustment_type', sa.String(length=50), nullable=False),
        sa.Column('quantity_change', sa.Integer(), nullable=False),
        sa.Column('quantity_before', sa.Integer(), nullable=False),
        sa.Column('quantity_after', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('notes', sa.String(length=1000), nullable=True),
        sa.Column('reference_number', sa.String(length=200), nullable=True),
        sa.Column('adjusted_by_employee_id', sa.Integer(), nullable=False),
        sa.Column('cost_impact_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('adjustment_date', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('requires_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approved_by_employee_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('quantity_change <> 0', name='ck_stock_adjustments_change_nonzero'),
        sa.CheckConstraint('quantity_after = quantity_before + quantity_change', name='ck_stock_adjustments_after_matches'),
        sa.CheckConstraint('quantity_after >= 0', name='ck_stock_adjustments_after_non_negative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['adjusted_by_employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['approved_by_employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_adjustments_product_id', 'stock_adjustments', ['product_id'])
    op.create_index('ix_stock_adjustments_pending', 'stock_adjustments', ['requires_approval', 'is_approved'])
    op.create_index('ix_stock_adjustments_product_date', 'stock_adjustments', ['product_id', 'adjustment_date'])

    # ==========================================================================
    # 5. INVENTORY COUNTS
    # ==========================================================================
    op.create_table('inventory_counts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('count_name', sa.String(length=100), nullable=False),
        sa.Column('count_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='IN_PROGRESS'),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('started_by_employee_id', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_by_employee_id', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('adjustments_applied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_items_counted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_discrepancies', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_shrinkage_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_overage_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('net_variance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['started_by_employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['completed_by_employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index(
        'uq_inventory_counts_single_in_progress',
        'inventory_counts',
        ['status'],
        unique=True,
        sqlite_where=sa.text("status = 'IN_PROGRESS'"),
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
    )

    op.create_table('inventory_count_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_count_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_batch_id', sa.Integer(), nullable=True),
        sa.Column('system_quantity', sa.Integer(), nullable=False),
        sa.Column('counted_quantity', sa.Integer(), nullable=False),
        sa.Column('variance', sa.Integer(), nullable=False),
        sa.Column('cost_per_unit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('variance_value_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discrepancy_reason', sa.String(length=200), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('counted_by_employee_id', sa.Integer(), nullable=False),
        sa.Column('counted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('counted_quantity >= 0', name='ck_inventory_count_items_counted_non_negative'),
        sa.ForeignKeyConstraint(['inventory_count_id'], ['inventory_counts.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['product_batch_id'], ['product_batches.id']),
        sa.ForeignKeyConstraint(['counted_by_employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'inventory_count_id', 'product_id', 'product_batch_id',
            name='uq_inventory_count_items_count_product_batch',
        ),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_count_items_inventory_count_id', 'inventory_count_items', ['inventory_count_id'])
    op.create_index('ix_inventory_count_items_product_id', 'inventory_count_items', ['product_id'])


def downgrade():
    op.drop_table('inventory_count_items')
    op.drop_index('uq_inventory_counts_single_in_progress', table_name='inventory_counts')
    op.drop_table('inventory_counts')
    op.drop_table('stock_adjustments')
    op.drop_table('return_items')
    op.drop_table('returns')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('product_batches')
    op.drop_table('products')
    op.drop_table('user_activities')
    op.drop_table('system_settings')
    op.drop_table('employees')
