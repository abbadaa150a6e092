"""Exceptions raised by the store's write path.

Constraint violations (unique, foreign key, check) are not wrapped: they reach the
caller as `sqlalchemy.exc.IntegrityError` after the session has been rolled back.
"""


class StoreError(Exception):
    """Base class for store errors."""


class OrderNotFoundError(StoreError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderItemNotFoundError(StoreError):
    def __init__(self, order_id: int, line_number: int):
        super().__init__(f"Order item {order_id}/{line_number} not found")
        self.order_id = order_id
        self.line_number = line_number
