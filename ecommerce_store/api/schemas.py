from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ecommerce_store.db.models import OrderStatus


class OrderCreate(BaseModel):
    customer_id: int
    shipping_address_id: int
    billing_address_id: Optional[int] = None
    status: OrderStatus = OrderStatus.PENDING


class OrderItemCreate(BaseModel):
    product_id: int
    unit_price: Decimal = Field(ge=0, decimal_places=2)
    quantity: int = Field(gt=0)
    # Trusted as given; not checked against unit_price * quantity.
    subtotal: Decimal = Field(ge=0, decimal_places=2)


class OrderItemUpdate(BaseModel):
    product_id: Optional[int] = None
    unit_price: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    quantity: Optional[int] = Field(default=None, gt=0)
    subtotal: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    order_id: Optional[int] = Field(default=None, description="Move the item to this order.")


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    line_number: int
    product_id: int
    unit_price: Decimal
    quantity: int
    subtotal: Decimal


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    shipping_address_id: int
    billing_address_id: Optional[int] = None
    status: str
    total_amount: Decimal
    placed_at: Optional[datetime] = None
    items: List[OrderItemRead] = []


class TotalDriftRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    cached_total: Decimal
    items_total: Decimal
