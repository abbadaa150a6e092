from functools import partial
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from ecommerce_store.api.schemas import (
    OrderCreate,
    OrderItemCreate,
    OrderItemRead,
    OrderItemUpdate,
    OrderRead,
    TotalDriftRead,
)
from ecommerce_store.db.session import get_db
from ecommerce_store.services.audit import record_change
from ecommerce_store.services.order_items import OrderItemService, verify_order_totals

router = APIRouter()


def _audited(db: Session, actor: Optional[str]) -> OrderItemService:
    """Service whose item mutations commit a ChangeLog entry naming `actor`."""
    return OrderItemService(db, record=partial(record_change, who=actor))


@router.post("/", response_model=OrderRead, status_code=status.HTTP_201_CREATED, summary="Create an empty order")
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    order = OrderItemService(db).create_order(
        customer_id=payload.customer_id,
        shipping_address_id=payload.shipping_address_id,
        billing_address_id=payload.billing_address_id,
        status=payload.status.value,
    )
    return OrderRead.model_validate(order)


@router.get("/totals/drift", response_model=List[TotalDriftRead], summary="Orders with a stale cached total")
def get_total_drift(db: Session = Depends(get_db)):
    return [TotalDriftRead.model_validate(d) for d in verify_order_totals(db)]


@router.get("/{order_id}", response_model=OrderRead, summary="Get an order with its items")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return OrderRead.model_validate(OrderItemService(db).get_order(order_id))


@router.post(
    "/{order_id}/items",
    response_model=OrderItemRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add an item to an order",
)
def add_order_item(
    order_id: int,
    payload: OrderItemCreate,
    db: Session = Depends(get_db),
    x_actor: Optional[str] = Header(default=None),
):
    item = _audited(db, x_actor).add_item(
        order_id=order_id,
        product_id=payload.product_id,
        unit_price=payload.unit_price,
        quantity=payload.quantity,
        subtotal=payload.subtotal,
    )
    return OrderItemRead.model_validate(item)


@router.patch("/{order_id}/items/{line_number}", response_model=OrderItemRead, summary="Update or move an item")
def update_order_item(
    order_id: int,
    line_number: int,
    payload: OrderItemUpdate,
    db: Session = Depends(get_db),
    x_actor: Optional[str] = Header(default=None),
):
    item = _audited(db, x_actor).update_item(
        order_id,
        line_number,
        product_id=payload.product_id,
        unit_price=payload.unit_price,
        quantity=payload.quantity,
        subtotal=payload.subtotal,
        new_order_id=payload.order_id,
    )
    return OrderItemRead.model_validate(item)


@router.delete("/{order_id}/items/{line_number}", response_model=OrderRead, summary="Remove an item")
def remove_order_item(
    order_id: int,
    line_number: int,
    db: Session = Depends(get_db),
    x_actor: Optional[str] = Header(default=None),
):
    service = _audited(db, x_actor)
    service.remove_item(order_id, line_number)
    return OrderRead.model_validate(service.get_order(order_id))
