"""Order workflow exceptions."""

class OrderError(Exception):
    """Base class for order-related errors."""
    kind = 'internal'

class OrderNotFoundError(OrderError):
    """Raised when an order identifier matches no order."""
    kind = 'not_found'

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")

class InvalidOrderError(OrderError):
    """Raised when order input fails validation."""
    kind = 'validation'

class InsufficientStockError(OrderError):
    """Raised when a line asks for more than the stock on hand."""
    kind = 'validation'

    def __init__(self, name: str, available: int, requested: int):
        self.name = name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {name}: "
            f"available {available}, requested {requested}"
        )

class InvalidTransitionError(OrderError):
    """Raised when an order is moved to a status it cannot reach."""
    kind = 'validation'

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {current} to {requested}")
