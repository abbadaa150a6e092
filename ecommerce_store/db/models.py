"""
SQLAlchemy ORM models for the e-commerce store schema.

Notes:
- Referential actions live in the database (`ondelete=`); relationships use
  `passive_deletes` so the ORM defers to them instead of emulating them.
- RESTRICT edges (customer -> orders, address -> orders, product -> order_items)
  use `passive_deletes="all"` so the ORM never nulls a protected reference.
- `Order.total_amount` is a cached aggregate. It is written only by the
  order-total triggers and by `ecommerce_store.services.order_items`.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    false,
    func,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ecommerce_store.db.base import Base, BigIntPK
from ecommerce_store.db.triggers import install_order_total_triggers


class OrderStatus(str, enum.Enum):
    """Recognized order states. The column itself stays a free-form string."""

    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    """Recognized payment states."""

    INITIATED = "initiated"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class TimestampMixin(CreatedAtMixin):
    """created_at plus an updated_at refreshed on every ORM update."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Customer(Base, TimestampMixin):
    """customers table."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    addresses: Mapped[List["Address"]] = relationship(
        "Address", back_populates="customer", cascade="all, delete-orphan", passive_deletes=True
    )
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="customer", passive_deletes="all")
    reviews: Mapped[List["Review"]] = relationship(
        "Review", back_populates="customer", cascade="all, delete-orphan", passive_deletes=True
    )
    wishlists: Mapped[List["Wishlist"]] = relationship(
        "Wishlist", back_populates="customer", cascade="all, delete-orphan", passive_deletes=True
    )


class Address(Base, CreatedAtMixin):
    """addresses table."""

    __tablename__ = "addresses"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("customers.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False
    )

    label: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # e.g. 'Home', 'Work'
    line1: Mapped[str] = mapped_column(String(255), nullable=False)
    line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    customer: Mapped[Customer] = relationship("Customer", back_populates="addresses")


class Category(Base):
    """categories table. Self-referential hierarchy via parent_id."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    parent: Mapped[Optional["Category"]] = relationship("Category", remote_side="Category.id", back_populates="children")
    children: Mapped[List["Category"]] = relationship("Category", back_populates="parent", passive_deletes=True)

    products: Mapped[List["Product"]] = relationship(
        "Product",
        secondary="product_categories",
        back_populates="categories",
        lazy="selectin",
        passive_deletes=True,
    )


class Product(Base, TimestampMixin):
    """products table."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    categories: Mapped[List[Category]] = relationship(
        "Category",
        secondary="product_categories",
        back_populates="products",
        lazy="selectin",
        passive_deletes=True,
    )
    inventory: Mapped[List["Inventory"]] = relationship(
        "Inventory", back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )
    reviews: Mapped[List["Review"]] = relationship(
        "Review", back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="price_non_negative"),
        Index("idx_products_name", "name", mysql_length=100),
    )


class ProductCategory(Base):
    """product_categories join table."""

    __tablename__ = "product_categories"

    product_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("products.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )


class Supplier(Base, CreatedAtMixin):
    """suppliers table."""

    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    inventory: Mapped[List["Inventory"]] = relationship("Inventory", back_populates="supplier", passive_deletes=True)


class Inventory(Base):
    """inventory table. Stock per product, optionally per supplier."""

    __tablename__ = "inventory"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("products.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False
    )
    supplier_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("suppliers.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_stocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    product: Mapped[Product] = relationship("Product", back_populates="inventory")
    supplier: Mapped[Optional[Supplier]] = relationship("Supplier", back_populates="inventory")

    __table_args__ = (CheckConstraint("quantity >= 0", name="quantity_non_negative"),)


class Order(Base):
    """orders table."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("customers.id", ondelete="RESTRICT", onupdate="CASCADE"), nullable=False
    )
    shipping_address_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("addresses.id", ondelete="RESTRICT", onupdate="CASCADE"), nullable=False
    )
    billing_address_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("addresses.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=OrderStatus.PENDING.value, server_default=OrderStatus.PENDING.value
    )
    # Cached SUM(order_items.subtotal); see ecommerce_store.db.triggers.
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0"
    )
    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer: Mapped[Customer] = relationship("Customer", back_populates="orders")
    shipping_address: Mapped[Address] = relationship("Address", foreign_keys=[shipping_address_id])
    billing_address: Mapped[Optional[Address]] = relationship("Address", foreign_keys=[billing_address_id])

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.line_number",
    )
    payments: Mapped[List["Payment"]] = relationship(
        "Payment", back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="total_amount_non_negative"),
        Index("idx_orders_customer_placed_at", "customer_id", "placed_at"),
    )


class OrderItem(Base):
    """order_items table. Identity is (order_id, line_number)."""

    __tablename__ = "order_items"

    order_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("orders.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("products.id", ondelete="RESTRICT", onupdate="CASCADE"), nullable=False
    )

    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Supplied by the writer; never derived from unit_price * quantity.
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="items")
    product: Mapped[Product] = relationship("Product")

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="unit_price_non_negative"),
        CheckConstraint("quantity > 0", name="quantity_positive"),
        CheckConstraint("subtotal >= 0", name="subtotal_non_negative"),
        Index("ix_order_items_product", "product_id"),
    )


class Payment(Base):
    """payments table. Several attempts may exist per order."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("orders.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False
    )

    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    provider_transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PaymentStatus.INITIATED.value,
        server_default=PaymentStatus.INITIATED.value,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    order: Mapped[Order] = relationship("Order", back_populates="payments")

    __table_args__ = (CheckConstraint("paid_amount >= 0", name="paid_amount_non_negative"),)


class Review(Base, CreatedAtMixin):
    """reviews table."""

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("products.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False
    )
    customer_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("customers.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    product: Mapped[Product] = relationship("Product", back_populates="reviews")
    customer: Mapped[Customer] = relationship("Customer", back_populates="reviews")

    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="rating_range"),)


class Wishlist(Base, CreatedAtMixin):
    """wishlists table."""

    __tablename__ = "wishlists"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("customers.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="Default", server_default="Default")

    customer: Mapped[Customer] = relationship("Customer", back_populates="wishlists")
    items: Mapped[List["WishlistItem"]] = relationship(
        "WishlistItem", back_populates="wishlist", cascade="all, delete-orphan", passive_deletes=True
    )


class WishlistItem(Base):
    """wishlist_items join table (customer <-> product through a wishlist)."""

    __tablename__ = "wishlist_items"

    wishlist_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("wishlists.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("products.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    wishlist: Mapped[Wishlist] = relationship("Wishlist", back_populates="items")
    product: Mapped[Product] = relationship("Product")


class ChangeLog(Base, CreatedAtMixin):
    """change_logs table. Append-only audit sink."""

    __tablename__ = "change_logs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    who: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    object_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    object_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    change_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    change_data: Mapped[Optional[Any]] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)


install_order_total_triggers(OrderItem.__table__)
