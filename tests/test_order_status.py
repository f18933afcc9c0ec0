"""Tests for the order status state machine and update sanitizing."""

import pytest

from orders import OrderStatus, InvalidTransitionError, InvalidOrderError
from orders.status import (
    TERMINAL_STATUSES,
    check_transition,
    sanitize_order_update
)

@pytest.mark.parametrize("current,requested", [
    ("Pending", "Processing"),
    ("Pending", "Cancelled"),
    ("Pending", "Rejected"),
    ("Processing", "Shipped"),
    ("Shipped", "Delivered"),
    ("Delivered", "Completed"),
])
def test_allowed_transitions(current, requested):
    assert check_transition(current, requested) == OrderStatus(requested)

@pytest.mark.parametrize("current,requested", [
    ("Pending", "Shipped"),
    ("Pending", "Completed"),
    ("Processing", "Cancelled"),
    ("Shipped", "Processing"),
    ("Completed", "Pending"),
    ("Cancelled", "Processing"),
    ("Rejected", "Pending"),
])
def test_rejected_transitions(current, requested):
    with pytest.raises(InvalidTransitionError):
        check_transition(current, requested)

def test_same_status_is_not_a_transition():
    assert check_transition("Shipped", "Shipped") is None
    assert check_transition("Completed", "Completed") is None

def test_unknown_status():
    with pytest.raises(InvalidOrderError):
        check_transition("Pending", "Lost")

def test_terminal_statuses():
    assert TERMINAL_STATUSES == {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REJECTED}

def test_sanitize_drops_immutable_fields():
    fields = {
        'status': 'Processing',
        'tracking_update': 'Accepted by distributor',
        'buyer_address': '0xevil',
        'seller_address': '0xevil',
        'order_id': 'ORD-999',
        'items': [],
        'total_amount': 0,
        'transaction_hash': '0xdead',
    }

    assert sanitize_order_update(fields) == {
        'status': 'Processing',
        'tracking_update': 'Accepted by distributor'
    }
