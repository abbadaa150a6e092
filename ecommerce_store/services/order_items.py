"""
Order-item write path.

All item mutations go through `OrderItemService`, which keeps `orders.total_amount`
equal to the sum of the order's item subtotals:

1) lock the affected order row(s) (SELECT ... FOR UPDATE, ascending id order),
2) apply the item mutation,
3) recompute COALESCE(SUM(subtotal), 0) for every affected order and write it back,
4) commit, or roll back everything and re-raise.

SQLite has no row locks; there the store engine begins every transaction with
BEGIN IMMEDIATE, which serializes writers before step 1 reads anything.

The total is always recomputed from the item rows, never adjusted by a delta,
so a missed update or an item moved between orders cannot leave drift behind.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ecommerce_store.db.models import Order, OrderItem, OrderStatus
from ecommerce_store.errors import OrderItemNotFoundError, OrderNotFoundError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _as_money(value) -> Decimal:
    # SQLite hands SUM() back as a float.
    return Decimal(str(value)).quantize(CENTS)


def order_items_total(session: Session, order_id: int) -> Decimal:
    """Sum of subtotal over the order's current items, 0 when it has none."""
    stmt = select(func.coalesce(func.sum(OrderItem.subtotal), 0)).where(OrderItem.order_id == order_id)
    return _as_money(session.execute(stmt).scalar_one())


# PUBLIC_INTERFACE
def recompute_order_total(session: Session, order_id: int) -> Decimal:
    """
    Recompute and overwrite the cached total of one order.

    Pending item changes are flushed first so the aggregate sees them. The caller
    owns the transaction and must hold the order's row lock.

    Returns:
        Decimal: the total written to the order.
    """
    session.flush()
    total = order_items_total(session, order_id)
    session.execute(update(Order).where(Order.id == order_id).values(total_amount=total))
    logger.debug("Order %s total recomputed: %s", order_id, total)
    return total


@dataclass(frozen=True)
class TotalDrift:
    order_id: int
    cached_total: Decimal
    items_total: Decimal


# PUBLIC_INTERFACE
def verify_order_totals(session: Session) -> List[TotalDrift]:
    """
    Find orders whose cached total disagrees with their items.

    Only writes that bypass both the triggers and this module (bulk loads with
    triggers disabled, manual edits of total_amount) can produce entries here.
    """
    sums = (
        select(OrderItem.order_id, func.sum(OrderItem.subtotal).label("items_total"))
        .group_by(OrderItem.order_id)
        .subquery()
    )
    stmt = (
        select(Order.id, Order.total_amount, func.coalesce(sums.c.items_total, 0))
        .outerjoin(sums, sums.c.order_id == Order.id)
        .order_by(Order.id)
    )

    drift = []
    for order_id, cached, actual in session.execute(stmt):
        cached, actual = _as_money(cached), _as_money(actual)
        if cached != actual:
            drift.append(TotalDrift(order_id=order_id, cached_total=cached, items_total=actual))

    if drift:
        logger.warning("Found %d order(s) with a stale total", len(drift))
    return drift


class OrderItemService:
    """
    The only sanctioned way to mutate order items.

    `record`, when given, is called as `record(session, object_type=..., object_id=...,
    change_type=..., data=...)` inside the unit of work of every item mutation, so
    an audit entry commits or rolls back together with the change it describes.
    """

    def __init__(self, session: Session, record: Optional[Callable[..., Any]] = None):
        self.session = session
        self.record = record

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except Exception as exc:
            self.session.rollback()
            logger.warning("Order item mutation rolled back: %s", exc)
            raise

    def _audit(self, order_id: int, line_number: int, change_type: str, data: Dict[str, Any]) -> None:
        if self.record is None:
            return
        self.record(
            self.session,
            object_type="order_item",
            object_id=f"{order_id}/{line_number}",
            change_type=change_type,
            data={key: str(value) if isinstance(value, Decimal) else value for key, value in data.items()},
        )

    def _lock_order(self, order_id: int) -> Order:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = self.session.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _get_item(self, order_id: int, line_number: int) -> OrderItem:
        item = self.session.get(OrderItem, (order_id, line_number))
        if item is None:
            raise OrderItemNotFoundError(order_id, line_number)
        return item

    def _next_line_number(self, order_id: int) -> int:
        stmt = select(func.coalesce(func.max(OrderItem.line_number), 0)).where(OrderItem.order_id == order_id)
        return int(self.session.execute(stmt).scalar_one()) + 1

    def _refresh_totals(self, order_ids: List[int]) -> None:
        for order_id in order_ids:
            recompute_order_total(self.session, order_id)
            order = self.session.get(Order, order_id)
            if order is not None:
                self.session.expire(order, ["items"])

    # PUBLIC_INTERFACE
    def get_order(self, order_id: int) -> Order:
        """Return an order or raise OrderNotFoundError."""
        order = self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    # PUBLIC_INTERFACE
    def create_order(
        self,
        customer_id: int,
        shipping_address_id: int,
        billing_address_id: Optional[int] = None,
        status: str = OrderStatus.PENDING.value,
    ) -> Order:
        """Create an empty order. Its total starts at 0 and is only changed by item mutations."""
        with self._transaction():
            order = Order(
                customer_id=customer_id,
                shipping_address_id=shipping_address_id,
                billing_address_id=billing_address_id,
                status=status,
                total_amount=Decimal("0.00"),
            )
            self.session.add(order)
            self.session.flush()
        logger.info("Created order %s for customer %s", order.id, customer_id)
        return order

    # PUBLIC_INTERFACE
    def add_item(
        self,
        order_id: int,
        product_id: int,
        unit_price: Decimal,
        quantity: int,
        subtotal: Decimal,
    ) -> OrderItem:
        """
        Append an item to an order and refresh the order total.

        `subtotal` is stored as given; it is not derived from unit_price * quantity.
        """
        with self._transaction():
            self._lock_order(order_id)
            item = OrderItem(
                order_id=order_id,
                line_number=self._next_line_number(order_id),
                product_id=product_id,
                unit_price=unit_price,
                quantity=quantity,
                subtotal=subtotal,
            )
            self.session.add(item)
            self.session.flush()
            self._refresh_totals([order_id])
            self._audit(
                order_id,
                item.line_number,
                "insert",
                {"product_id": product_id, "unit_price": unit_price, "quantity": quantity, "subtotal": subtotal},
            )

        logger.info("Added item %s/%s (subtotal %s)", order_id, item.line_number, subtotal)
        return item

    # PUBLIC_INTERFACE
    def update_item(
        self,
        order_id: int,
        line_number: int,
        *,
        product_id: Optional[int] = None,
        unit_price: Optional[Decimal] = None,
        quantity: Optional[int] = None,
        subtotal: Optional[Decimal] = None,
        new_order_id: Optional[int] = None,
    ) -> OrderItem:
        """
        Change an item's fields and/or move it to another order.

        Passing `new_order_id` requests a move; it is recorded as `order_id` in
        the audit data, matching the HTTP payload field.

        A move gives the item the next line number of the target order and
        refreshes the totals of both the source and the target order.
        """
        changes = {
            "product_id": product_id,
            "unit_price": unit_price,
            "quantity": quantity,
            "subtotal": subtotal,
            "order_id": new_order_id,
        }
        moving = new_order_id is not None and new_order_id != order_id
        affected = sorted({order_id, new_order_id}) if moving else [order_id]

        with self._transaction():
            # Ascending id order so two concurrent moves cannot deadlock.
            for oid in affected:
                self._lock_order(oid)

            item = self._get_item(order_id, line_number)
            target_line = self._next_line_number(new_order_id) if moving else None

            if product_id is not None:
                item.product_id = product_id
            if unit_price is not None:
                item.unit_price = unit_price
            if quantity is not None:
                item.quantity = quantity
            if subtotal is not None:
                item.subtotal = subtotal
            if moving:
                item.order_id = new_order_id
                item.line_number = target_line

            self.session.flush()
            self._refresh_totals(affected)
            changed = {key: value for key, value in changes.items() if value is not None}
            self._audit(order_id, line_number, "update", changed)

        if moving:
            logger.info("Moved item %s/%s to %s/%s", order_id, line_number, new_order_id, target_line)
        else:
            logger.info("Updated item %s/%s", order_id, line_number)
        return item

    # PUBLIC_INTERFACE
    def remove_item(self, order_id: int, line_number: int) -> Decimal:
        """
        Delete an item and refresh the order total.

        Returns:
            Decimal: the order's new total (0 once the last item is gone).
        """
        with self._transaction():
            self._lock_order(order_id)
            item = self._get_item(order_id, line_number)
            self.session.delete(item)
            self.session.flush()
            total = recompute_order_total(self.session, order_id)
            self.session.expire(self.session.get(Order, order_id), ["items"])
            self._audit(order_id, line_number, "delete", {})

        logger.info("Removed item %s/%s, order total now %s", order_id, line_number, total)
        return total
