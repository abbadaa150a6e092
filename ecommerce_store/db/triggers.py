"""
Database triggers keeping orders.total_amount equal to SUM(order_items.subtotal).

Every trigger recomputes the aggregate from scratch:

    UPDATE orders SET total_amount = COALESCE(SUM(subtotal), 0) ... WHERE id = <order>

An UPDATE on order_items recomputes both the old and the new order so an item
moved between orders leaves both totals correct. The triggers cover writes that
bypass `ecommerce_store.services.order_items`; a bulk load with triggers disabled
or a direct edit of total_amount can still break the invariant (see
`verify_order_totals`).

On MySQL and PostgreSQL the trigger locks the parent order row(s) before it
reads the aggregate, so a concurrent writer to the same order waits and then
sums over the committed rows. SQLite has a single writer per database and
needs no row lock.
"""

from __future__ import annotations

from typing import Dict, List

from sqlalchemy import DDL, Table, event

ORDERS_TABLE = "orders"
ORDER_ITEMS_TABLE = "order_items"


def _recompute(ref: str) -> str:
    return (
        f"UPDATE {ORDERS_TABLE} SET total_amount = ("
        f"SELECT COALESCE(SUM(subtotal), 0) FROM {ORDER_ITEMS_TABLE} WHERE order_id = {ref}.order_id"
        f") WHERE id = {ref}.order_id;"
    )


def _mysql_lock(order_id: str) -> str:
    # A trigger cannot return a result set, hence the INTO.
    return f"SELECT id INTO @locked_order_id FROM {ORDERS_TABLE} WHERE id = {order_id} FOR UPDATE;"


def _row_trigger(name: str, timing: str, body: List[str]) -> str:
    statements = "\n    ".join(body)
    return (
        f"CREATE TRIGGER {name}\n"
        f"AFTER {timing} ON {ORDER_ITEMS_TABLE}\n"
        f"FOR EACH ROW\n"
        f"BEGIN\n    {statements}\nEND"
    )


_SQLITE_TRIGGERS = {
    "trg_order_items_after_insert": ("INSERT", [_recompute("NEW")]),
    "trg_order_items_after_update": ("UPDATE", [_recompute("OLD"), _recompute("NEW")]),
    "trg_order_items_after_delete": ("DELETE", [_recompute("OLD")]),
}

# Same trigger names; on UPDATE the two orders are locked in ascending id order.
_MYSQL_TRIGGERS = {
    "trg_order_items_after_insert": ("INSERT", [_mysql_lock("NEW.order_id"), _recompute("NEW")]),
    "trg_order_items_after_update": (
        "UPDATE",
        [
            _mysql_lock("LEAST(OLD.order_id, NEW.order_id)"),
            _mysql_lock("GREATEST(OLD.order_id, NEW.order_id)"),
            _recompute("OLD"),
            _recompute("NEW"),
        ],
    ),
    "trg_order_items_after_delete": ("DELETE", [_mysql_lock("OLD.order_id"), _recompute("OLD")]),
}

_ROW_TRIGGERS = {"sqlite": _SQLITE_TRIGGERS, "mysql": _MYSQL_TRIGGERS}

_PG_FUNCTION = "refresh_order_total"
_PG_TRIGGER = "trg_order_items_refresh_total"

# FOR NO KEY UPDATE conflicts with itself but not with the KEY SHARE lock the
# order_items foreign key check holds on the same row.
_PG_CREATE = [
    f"""CREATE OR REPLACE FUNCTION {_PG_FUNCTION}() RETURNS trigger AS $$
BEGIN
    IF TG_OP = 'UPDATE' THEN
        PERFORM 1 FROM {ORDERS_TABLE} WHERE id IN (OLD.order_id, NEW.order_id) ORDER BY id FOR NO KEY UPDATE;
    ELSIF TG_OP = 'DELETE' THEN
        PERFORM 1 FROM {ORDERS_TABLE} WHERE id = OLD.order_id FOR NO KEY UPDATE;
    ELSE
        PERFORM 1 FROM {ORDERS_TABLE} WHERE id = NEW.order_id FOR NO KEY UPDATE;
    END IF;
    IF TG_OP IN ('UPDATE', 'DELETE') THEN
        {_recompute("OLD")}
    END IF;
    IF TG_OP IN ('INSERT', 'UPDATE') THEN
        {_recompute("NEW")}
    END IF;
    RETURN NULL;
END;
$$ LANGUAGE plpgsql""",
    f"CREATE TRIGGER {_PG_TRIGGER} AFTER INSERT OR UPDATE OR DELETE ON {ORDER_ITEMS_TABLE} "
    f"FOR EACH ROW EXECUTE FUNCTION {_PG_FUNCTION}()",
]

SUPPORTED_DIALECTS = ("sqlite", "mysql", "postgresql")


def create_trigger_statements(dialect: str) -> List[str]:
    """Return the DDL creating the order-total triggers for `dialect` (empty if unsupported)."""
    if dialect in _ROW_TRIGGERS:
        return [_row_trigger(name, timing, body) for name, (timing, body) in _ROW_TRIGGERS[dialect].items()]
    if dialect == "postgresql":
        return list(_PG_CREATE)
    return []


def drop_trigger_statements(dialect: str) -> List[str]:
    """Return the DDL removing the order-total triggers for `dialect`."""
    if dialect in _ROW_TRIGGERS:
        return [f"DROP TRIGGER IF EXISTS {name}" for name in _ROW_TRIGGERS[dialect]]
    if dialect == "postgresql":
        return [
            f"DROP TRIGGER IF EXISTS {_PG_TRIGGER} ON {ORDER_ITEMS_TABLE}",
            f"DROP FUNCTION IF EXISTS {_PG_FUNCTION}()",
        ]
    return []


def _trigger_ddl() -> Dict[str, List[DDL]]:
    return {
        dialect: [DDL(stmt).execute_if(dialect=dialect) for stmt in create_trigger_statements(dialect)]
        for dialect in SUPPORTED_DIALECTS
    }


def install_order_total_triggers(order_items: Table) -> None:
    """
    Attach trigger DDL to the order_items table so `create_all` installs it.

    Dropping the table drops its triggers; the PostgreSQL trigger function is
    removed after the table is gone.
    """
    for statements in _trigger_ddl().values():
        for ddl in statements:
            event.listen(order_items, "after_create", ddl)

    event.listen(
        order_items,
        "after_drop",
        DDL(f"DROP FUNCTION IF EXISTS {_PG_FUNCTION}()").execute_if(dialect="postgresql"),
    )
