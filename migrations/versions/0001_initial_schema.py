"""Initial store schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from ecommerce_store.db.base import BigIntPK

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _fk(column: str, target: str, ondelete: str, nullable: bool = False, type_=BigIntPK, **kw) -> sa.Column:
    return sa.Column(
        column,
        type_,
        sa.ForeignKey(target, ondelete=ondelete, onupdate='CASCADE'),
        nullable=nullable,
        **kw,
    )


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(30)),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        'addresses',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        _fk('customer_id', 'customers.id', 'CASCADE'),
        sa.Column('label', sa.String(50)),
        sa.Column('line1', sa.String(255), nullable=False),
        sa.Column('line2', sa.String(255)),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100)),
        sa.Column('postal_code', sa.String(30)),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        _fk('parent_id', 'categories.id', 'SET NULL', nullable=True, type_=sa.Integer()),
        sa.Column('description', sa.Text()),
    )

    op.create_table(
        'products',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('sku', sa.String(100), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint('price >= 0', name='price_non_negative'),
    )
    op.create_index('idx_products_name', 'products', ['name'], mysql_length=100)

    op.create_table(
        'product_categories',
        _fk('product_id', 'products.id', 'CASCADE', primary_key=True),
        _fk('category_id', 'categories.id', 'CASCADE', type_=sa.Integer(), primary_key=True),
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('contact_email', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        _created_at(),
    )

    op.create_table(
        'inventory',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        _fk('product_id', 'products.id', 'CASCADE'),
        _fk('supplier_id', 'suppliers.id', 'SET NULL', nullable=True, type_=sa.Integer()),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_stocked_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('quantity >= 0', name='quantity_non_negative'),
    )

    op.create_table(
        'orders',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        _fk('customer_id', 'customers.id', 'RESTRICT'),
        _fk('shipping_address_id', 'addresses.id', 'RESTRICT'),
        _fk('billing_address_id', 'addresses.id', 'SET NULL', nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('placed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('total_amount >= 0', name='total_amount_non_negative'),
    )
    op.create_index('idx_orders_customer_placed_at', 'orders', ['customer_id', 'placed_at'])

    op.create_table(
        'order_items',
        _fk('order_id', 'orders.id', 'CASCADE', primary_key=True),
        sa.Column('line_number', sa.Integer(), primary_key=True, autoincrement=False),
        _fk('product_id', 'products.id', 'RESTRICT'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('unit_price >= 0', name='unit_price_non_negative'),
        sa.CheckConstraint('quantity > 0', name='quantity_positive'),
        sa.CheckConstraint('subtotal >= 0', name='subtotal_non_negative'),
    )
    op.create_index('ix_order_items_product', 'order_items', ['product_id'])

    op.create_table(
        'payments',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        _fk('order_id', 'orders.id', 'CASCADE'),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('method', sa.String(100)),
        sa.Column('provider_transaction_id', sa.String(255), unique=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='initiated'),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('paid_amount >= 0', name='paid_amount_non_negative'),
    )

    op.create_table(
        'reviews',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        _fk('product_id', 'products.id', 'CASCADE'),
        _fk('customer_id', 'customers.id', 'CASCADE'),
        sa.Column('rating', sa.SmallInteger(), nullable=False),
        sa.Column('title', sa.String(255)),
        sa.Column('body', sa.Text()),
        _created_at(),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='rating_range'),
    )

    op.create_table(
        'wishlists',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        _fk('customer_id', 'customers.id', 'CASCADE'),
        sa.Column('name', sa.String(100), nullable=False, server_default='Default'),
        _created_at(),
    )

    op.create_table(
        'wishlist_items',
        _fk('wishlist_id', 'wishlists.id', 'CASCADE', primary_key=True),
        _fk('product_id', 'products.id', 'CASCADE', primary_key=True),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'change_logs',
        sa.Column('id', BigIntPK, primary_key=True, autoincrement=True),
        sa.Column('who', sa.String(255)),
        sa.Column('object_type', sa.String(100)),
        sa.Column('object_id', sa.String(100)),
        sa.Column('change_type', sa.String(50)),
        sa.Column('change_data', sa.JSON().with_variant(JSONB, 'postgresql')),
        _created_at(),
    )


def downgrade() -> None:
    for table in (
        'change_logs',
        'wishlist_items',
        'wishlists',
        'reviews',
        'payments',
        'order_items',
        'orders',
        'inventory',
        'suppliers',
        'product_categories',
        'products',
        'categories',
        'addresses',
        'customers',
    ):
        op.drop_table(table)
