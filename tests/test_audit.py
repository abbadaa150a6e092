from decimal import Decimal
from functools import partial

import pytest
from sqlalchemy import func, select

from ecommerce_store.db.models import ChangeLog, OrderItem
from ecommerce_store.services.audit import changes_for, record_change
from ecommerce_store.services.order_items import OrderItemService

from .conftest import total_of


def test_record_change_stores_payload(db):
    record_change(db, "alice", "product", 7, "update", {"price": {"old": "5.00", "new": "6.00"}})
    db.commit()

    (entry,) = changes_for(db, "product", 7)
    assert entry.who == "alice"
    assert entry.object_id == "7"
    assert entry.change_type == "update"
    assert entry.change_data == {"price": {"old": "5.00", "new": "6.00"}}
    assert entry.created_at is not None


def test_item_mutations_do_not_write_audit_entries(db, make_order, products):
    order = make_order()
    service = OrderItemService(db)
    item = service.add_item(order.id, products[0].id, Decimal("1.00"), 1, Decimal("1.00"))
    service.remove_item(order.id, item.line_number)

    assert db.execute(select(func.count()).select_from(ChangeLog)).scalar_one() == 0


def test_audit_entry_commits_with_the_item_change(db, make_order, products):
    order = make_order()
    service = OrderItemService(db, record=partial(record_change, who="carol"))

    item = service.add_item(order.id, products[0].id, Decimal("4.00"), 2, Decimal("8.00"))
    service.update_item(order.id, item.line_number, quantity=3)
    db.rollback()

    entries = changes_for(db, "order_item", f"{order.id}/{item.line_number}")
    assert [(e.who, e.change_type) for e in entries] == [("carol", "insert"), ("carol", "update")]
    assert entries[0].change_data == {"product_id": products[0].id, "unit_price": "4.00", "quantity": 2, "subtotal": "8.00"}
    assert entries[1].change_data == {"quantity": 3}


def test_failed_audit_write_rolls_back_the_item_change(db, make_order, products):
    order = make_order()

    def unavailable(session, **entry):
        raise RuntimeError("change log unavailable")

    with pytest.raises(RuntimeError):
        OrderItemService(db, record=unavailable).add_item(
            order.id, products[0].id, Decimal("4.00"), 1, Decimal("4.00")
        )

    assert total_of(db, order) == Decimal("0.00")
    assert db.execute(select(func.count()).select_from(OrderItem)).scalar_one() == 0
