"""Order status state machine and update sanitizing."""
import logging
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import InvalidOrderError, InvalidTransitionError

logger = logging.getLogger(__name__)

class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"

TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REJECTED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REJECTED: set(),
}

TERMINAL_STATUSES = {status for status, targets in TRANSITIONS.items() if not targets}

# Set at creation and never changed afterwards
IMMUTABLE_FIELDS = {
    'id',
    'order_id',
    'kind',
    'buyer_address',
    'seller_address',
    'items',
    'total_amount',
    'tracking',
    'created_at',
    'updated_at'
}

# Changed only through the chain linkage path
CHAIN_FIELDS = {'transaction_hash', 'blockchain_order_id'}

# Accepted by a regular order update
UPDATABLE_FIELDS = {'status', 'tracking_update', 'shipping_address', 'metadata_uri'}

def parse_status(value: Any) -> OrderStatus:
    """Coerce a client-supplied status to OrderStatus.

    Raises:
        InvalidOrderError: If the value names no known status
    """
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidOrderError(f"Unknown order status: {value!r}")

def check_transition(current: str, requested: str) -> Optional[OrderStatus]:
    """Validate a status change.

    Returns:
        The new status, or None when `requested` equals the current status

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    current_status, requested_status = OrderStatus(current), parse_status(requested)
    if current_status == requested_status:
        return None
    if requested_status not in TRANSITIONS[current_status]:
        raise InvalidTransitionError(current_status.value, requested_status.value)
    return requested_status

def sanitize_order_update(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Drop everything a regular order update may not touch."""
    rejected = set(fields) & (IMMUTABLE_FIELDS | CHAIN_FIELDS)
    if rejected:
        logger.warning(f"Ignoring immutable order fields in update: {sorted(rejected)}")
    return {
        key: value for key, value in fields.items()
        if key in UPDATABLE_FIELDS and value is not None
    }
