from ecommerce_store.services.audit import record_change
from ecommerce_store.services.order_items import (
    OrderItemService,
    TotalDrift,
    recompute_order_total,
    verify_order_totals,
)

__all__ = [
    "OrderItemService",
    "TotalDrift",
    "recompute_order_total",
    "record_change",
    "verify_order_totals",
]
