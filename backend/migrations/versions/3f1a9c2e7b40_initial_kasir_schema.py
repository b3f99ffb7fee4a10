"""initial_kasir_schema

Revision ID: 3f1a9c2e7b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create merchants, outlets, users, catalog, sales and audit tables."""
    op.create_table(
        'merchants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'merchant_settings',
        sa.Column('merchant_id', sa.Uuid(), nullable=False),
        sa.Column('tax_rate', sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column('discount_rate', sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('tax_rate >= 0 AND tax_rate <= 100', name='ck_settings_tax_rate_range'),
        sa.CheckConstraint('discount_rate >= 0 AND discount_rate <= 100', name='ck_settings_discount_rate_range'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('merchant_id'),
    )
    op.create_table(
        'outlets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('merchant_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_outlets_merchant', 'outlets', ['merchant_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('SUPERADMIN', 'ADMIN', 'KASIR', name='roleenum'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('ACTIVE', 'PENDING_APPROVAL', 'INACTIVE', name='userstatus'),
            nullable=False,
        ),
        sa.Column('merchant_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_merchant', 'users', ['merchant_id'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'kasir_outlets',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('outlet_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'outlet_id'),
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('merchant_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_suppliers_merchant', 'suppliers', ['merchant_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=50), nullable=True),
        sa.Column('barcode', sa.String(length=100), nullable=True),
        sa.Column('supplier_id', sa.Uuid(), nullable=True),
        sa.Column('buy_own', sa.Boolean(), nullable=False),
        sa.Column('merchant_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_products_merchant', 'products', ['merchant_id'])
    op.create_index('ix_products_barcode', 'products', ['barcode'])

    op.create_table(
        'product_units',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('price', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('is_base_unit', sa.Boolean(), nullable=False),
        sa.Column('conversion_factor', sa.Integer(), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_unit_price_non_negative'),
        sa.CheckConstraint('stock >= 0', name='ck_unit_stock_non_negative'),
        sa.CheckConstraint('conversion_factor >= 1', name='ck_unit_conversion_factor_min'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_product_unit_name'),
    )

    op.create_table(
        'stock_adjustments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('unit_name', sa.String(length=50), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=False),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('merchant_id', sa.Uuid(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('new_stock >= 0', name='ck_adjustment_new_stock_non_negative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_stock_adj_product', 'stock_adjustments', ['product_id'])
    op.create_index('ix_stock_adj_created_at', 'stock_adjustments', ['created_at'])

    op.create_table(
        'sales_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('merchant_id', sa.Uuid(), nullable=False),
        sa.Column('outlet_id', sa.Uuid(), nullable=False),
        sa.Column('kasir_id', sa.Uuid(), nullable=False),
        sa.Column('outlet_name', sa.String(length=255), nullable=True),
        sa.Column('kasir_name', sa.String(length=255), nullable=True),
        sa.Column('subtotal', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('payment_method', sa.Enum('cash', 'qris', name='paymentmethod'), nullable=False),
        sa.Column('cash_received', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.Column('change_given', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('total_amount > 0', name='ck_sales_txn_total_positive'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sales_txn_merchant_ts', 'sales_transactions', ['merchant_id', 'timestamp'])
    op.create_index('ix_sales_txn_outlet', 'sales_transactions', ['outlet_id'])
    op.create_index('ix_sales_txn_kasir', 'sales_transactions', ['kasir_id'])

    op.create_table(
        'transaction_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('transaction_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit_name', sa.String(length=50), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_per_unit', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_txn_item_quantity_positive'),
        sa.ForeignKeyConstraint(['transaction_id'], ['sales_transactions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_txn_items_transaction', 'transaction_items', ['transaction_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('record_id', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('changed_by', sa.Uuid(), nullable=True),
        sa.Column('merchant_id', sa.Uuid(), nullable=True),
        sa.Column('old_values', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('new_values', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_table_record', 'audit_logs', ['table_name', 'record_id'])
    op.create_index('ix_audit_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_changed_by', 'audit_logs', ['changed_by'])
    op.create_index('ix_audit_merchant_created', 'audit_logs', ['merchant_id', 'created_at'])


def downgrade() -> None:
    """Drop every table created above, children first."""
    op.drop_table('audit_logs')
    op.drop_table('transaction_items')
    op.drop_table('sales_transactions')
    op.drop_table('stock_adjustments')
    op.drop_table('product_units')
    op.drop_table('products')
    op.drop_table('suppliers')
    op.drop_table('kasir_outlets')
    op.drop_table('users')
    op.drop_table('outlets')
    op.drop_table('merchant_settings')
    op.drop_table('merchants')
    op.execute("DROP TYPE IF EXISTS paymentmethod")
    op.execute("DROP TYPE IF EXISTS userstatus")
    op.execute("DROP TYPE IF EXISTS roleenum")
