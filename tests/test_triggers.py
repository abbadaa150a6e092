"""
Order-total triggers: writes that go straight to order_items, bypassing the ORM.
"""
from decimal import Decimal

import pytest
from sqlalchemy import text

from ecommerce_store.db.triggers import create_trigger_statements, drop_trigger_statements

from .conftest import total_of

INSERT_ITEM = text(
    "INSERT INTO order_items (order_id, line_number, product_id, unit_price, quantity, subtotal) "
    "VALUES (:order_id, :line, :product_id, :price, 1, :subtotal)"
)


def _insert(db, order, line, product, subtotal):
    db.execute(
        INSERT_ITEM,
        {"order_id": order.id, "line": line, "product_id": product.id, "price": subtotal, "subtotal": subtotal},
    )
    db.commit()


class TestSqliteTriggers:
    def test_installed_by_init_store(self, engine):
        with engine.connect() as conn:
            names = conn.exec_driver_sql("SELECT name FROM sqlite_master WHERE type = 'trigger'").scalars().all()
        assert set(names) == {
            "trg_order_items_after_insert",
            "trg_order_items_after_update",
            "trg_order_items_after_delete",
        }

    def test_insert(self, db, make_order, products):
        order = make_order()

        _insert(db, order, 1, products[0], "19.99")
        assert total_of(db, order) == Decimal("19.99")

        _insert(db, order, 2, products[1], "5.00")
        assert total_of(db, order) == Decimal("24.99")

    def test_delete_down_to_zero(self, db, make_order, products):
        order = make_order()
        _insert(db, order, 1, products[0], "19.99")
        _insert(db, order, 2, products[1], "5.00")

        db.execute(text("DELETE FROM order_items WHERE order_id = :o AND line_number = 1"), {"o": order.id})
        db.commit()
        assert total_of(db, order) == Decimal("5.00")

        db.execute(text("DELETE FROM order_items WHERE order_id = :o"), {"o": order.id})
        db.commit()
        total = total_of(db, order)
        assert total is not None
        assert total == Decimal("0.00")

    def test_update(self, db, make_order, products):
        order = make_order()
        _insert(db, order, 1, products[1], "5.00")

        db.execute(text("UPDATE order_items SET subtotal = 12.50 WHERE order_id = :o"), {"o": order.id})
        db.commit()

        assert total_of(db, order) == Decimal("12.50")

    def test_update_moving_item_recomputes_both_orders(self, db, make_order, products):
        order_a, order_b = make_order(), make_order()
        _insert(db, order_a, 1, products[0], "10.00")

        db.execute(
            text("UPDATE order_items SET order_id = :b WHERE order_id = :a AND line_number = 1"),
            {"a": order_a.id, "b": order_b.id},
        )
        db.commit()

        assert total_of(db, order_a) == Decimal("0.00")
        assert total_of(db, order_b) == Decimal("10.00")

    def test_other_orders_untouched(self, db, make_order, products):
        order_a, order_b = make_order(), make_order()
        _insert(db, order_a, 1, products[0], "7.00")
        _insert(db, order_b, 1, products[0], "3.00")

        db.execute(text("DELETE FROM order_items WHERE order_id = :a"), {"a": order_a.id})
        db.commit()

        assert total_of(db, order_a) == Decimal("0.00")
        assert total_of(db, order_b) == Decimal("3.00")


class TestTriggerDDL:
    @pytest.mark.parametrize("dialect", ["sqlite", "mysql"])
    def test_row_triggers(self, dialect):
        statements = create_trigger_statements(dialect)
        assert len(statements) == 3
        update = next(s for s in statements if "AFTER UPDATE" in s)
        assert "OLD.order_id" in update and "NEW.order_id" in update
        assert all("COALESCE(SUM(subtotal), 0)" in s for s in statements)

    def test_mysql_triggers_lock_the_order_before_summing(self):
        for statement in create_trigger_statements("mysql"):
            lock = statement.index("FROM orders WHERE id =")
            assert "FOR UPDATE" in statement
            assert lock < statement.index("SUM(subtotal)")

        update = next(s for s in create_trigger_statements("mysql") if "AFTER UPDATE" in s)
        assert update.index("LEAST(OLD.order_id, NEW.order_id)") < update.index("GREATEST(OLD.order_id, NEW.order_id)")

    def test_sqlite_triggers_take_no_row_lock(self):
        assert not any("FOR UPDATE" in s for s in create_trigger_statements("sqlite"))

    def test_postgresql_function_handles_every_operation(self):
        function, trigger = create_trigger_statements("postgresql")
        assert "LANGUAGE plpgsql" in function
        assert "OLD.order_id" in function and "NEW.order_id" in function
        assert "AFTER INSERT OR UPDATE OR DELETE ON order_items" in trigger

    def test_postgresql_function_locks_orders_in_id_order_before_summing(self):
        function, _ = create_trigger_statements("postgresql")
        assert "WHERE id IN (OLD.order_id, NEW.order_id) ORDER BY id FOR NO KEY UPDATE" in function
        assert function.rindex("FOR NO KEY UPDATE") < function.index("SUM(subtotal)")

    def test_unsupported_dialect_gets_nothing(self):
        assert create_trigger_statements("mssql") == []
        assert drop_trigger_statements("mssql") == []

    def test_drop_statements(self):
        assert drop_trigger_statements("sqlite") == [
            "DROP TRIGGER IF EXISTS trg_order_items_after_insert",
            "DROP TRIGGER IF EXISTS trg_order_items_after_update",
            "DROP TRIGGER IF EXISTS trg_order_items_after_delete",
        ]
        assert drop_trigger_statements("postgresql")[-1] == "DROP FUNCTION IF EXISTS refresh_order_total()"
