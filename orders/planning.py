"""Stock planning for new orders.

Planning is pure: given the requested lines and the (locked) rows they draw
from, it either rejects the request or returns everything the caller needs
to write, so validation finishes before the first mutation.
"""
from decimal import Decimal
from typing import Any, Dict, List, Mapping

from catalog import ProductNotFoundError, derive_status
from .exceptions import InvalidOrderError, InsufficientStockError

def _validate_quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidOrderError(f"Quantity must be a positive integer, got {value!r}")
    return value

def plan_order(
    lines: List[Dict[str, Any]],
    products: Mapping[str, Dict[str, Any]]
) -> Dict[str, Any]:
    """Plan a catalog order.

    Args:
        lines: Cart lines, each with product_id and quantity
        products: Catalog rows by product_id, as read under lock

    Returns:
        Dict with:
            items: line items with the captured name and unit price
            total: sum of quantity * price over all lines
            decrements: per product, the requested total and the resulting
                        quantity and status

    Raises:
        InvalidOrderError: If the cart is empty or a quantity is invalid
        ProductNotFoundError: If a line names an unknown product
        InsufficientStockError: If a product's lines ask for more than it holds
    """
    if not lines:
        raise InvalidOrderError("Order must contain at least one item")

    requested: Dict[str, int] = {}
    items = []
    total = Decimal('0')
    for line in lines:
        product_id = line.get('product_id')
        if not product_id:
            raise InvalidOrderError("Every order item needs a product_id")
        quantity = _validate_quantity(line.get('quantity'))
        product = products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        requested[product_id] = requested.get(product_id, 0) + quantity
        price = Decimal(str(product['price']))
        items.append({
            'product_id': product_id,
            'name': product['name'],
            'quantity': quantity,
            'price': price
        })
        total += price * quantity

    decrements = []
    for product_id, quantity in requested.items():
        product = products[product_id]
        if product['quantity'] < quantity:
            raise InsufficientStockError(product['name'], product['quantity'], quantity)
        remaining = product['quantity'] - quantity
        decrements.append({
            'product_id': product_id,
            'name': product['name'],
            'quantity': quantity,
            'new_quantity': remaining,
            'new_status': derive_status(remaining)
        })

    return {'items': items, 'total': total, 'decrements': decrements}

def plan_transfer(item: Dict[str, Any], quantity: Any) -> Dict[str, Any]:
    """Plan moving `quantity` units of a seller's inventory item.

    Returns:
        Dict with the single captured line item, the total and the seller's
        remaining quantity

    Raises:
        InvalidOrderError: If the quantity is invalid
        InsufficientStockError: If the seller holds fewer units
    """
    quantity = _validate_quantity(quantity)
    if item['quantity'] < quantity:
        raise InsufficientStockError(item['name'], item['quantity'], quantity)

    price = Decimal(str(item['price']))
    return {
        'items': [{
            'product_id': None,
            'name': item['name'],
            'quantity': quantity,
            'price': price
        }],
        'total': price * quantity,
        'remaining': item['quantity'] - quantity
    }
