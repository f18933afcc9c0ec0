"""Catalog module for managing sellable products.

This module provides functionality for:
- Creating products with sequential PRD-xxx identifiers
- Deriving stock status from on-hand quantity
- Listing, updating and deleting products
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from database import get_pool
from parties import find_party
from parties import PartyNotFoundError, normalize_address
from .identifiers import (
    PRODUCT_PREFIX,
    ORDER_PREFIX,
    format_identifier,
    parse_identifier_suffix,
    next_identifier,
    reserve_identifier
)

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 10

STATUS_AVAILABLE = 'Available'
STATUS_LOW_STOCK = 'Low Stock'
STATUS_OUT_OF_STOCK = 'Out of Stock'

PRODUCT_STATUSES = (STATUS_AVAILABLE, STATUS_LOW_STOCK, STATUS_OUT_OF_STOCK)

# Roles allowed to put products into the catalog
SUPPLIER_ROLES = ('manufacturer', 'admin')

# User-mutable fields for products; status is always derived
MUTABLE_FIELDS = {
    'name',
    'category',
    'description',
    'manufacturer',
    'batch_number',
    'manufacture_date',
    'expiry_date',
    'price',
    'quantity',
    'unit',
    'image_url',
    'blockchain_id'
}

class CatalogError(Exception):
    """Base exception for catalog operations."""
    kind = 'internal'

class ProductNotFoundError(CatalogError):
    """Raised when a product is not found."""
    kind = 'not_found'

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")

class InvalidProductError(CatalogError):
    """Raised when product input fails validation."""
    kind = 'validation'

def derive_status(quantity: int) -> str:
    """Stock status for an on-hand quantity."""
    if quantity <= 0:
        return STATUS_OUT_OF_STOCK
    if quantity <= LOW_STOCK_THRESHOLD:
        return STATUS_LOW_STOCK
    return STATUS_AVAILABLE

def _validate_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidProductError(f"Invalid price: {value!r}")
    if not price.is_finite() or price < 0:
        raise InvalidProductError(f"Price must be a non-negative number, got {value!r}")
    return price

def _validate_quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidProductError(f"Quantity must be an integer, got {value!r}")
    if value < 0:
        raise InvalidProductError(f"Quantity must be non-negative, got {value}")
    return value

def _validate_updates(fields: Dict[str, Any]) -> Dict[str, Any]:
    updates = {key: value for key, value in fields.items() if key in MUTABLE_FIELDS}
    if 'price' in updates:
        updates['price'] = _validate_price(updates['price'])
    if 'quantity' in updates:
        updates['quantity'] = _validate_quantity(updates['quantity'])
        updates['status'] = derive_status(updates['quantity'])
    for key in ('name', 'category', 'unit'):
        if key in updates and not updates[key]:
            raise InvalidProductError(f"{key} cannot be empty")
    return updates

class ProductManager:
    """Manager class for handling catalog operations."""

    def __init__(self, pool=None):
        """Initialize the product manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_products(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """List catalog products, optionally filtered by category and/or status."""
        if status is not None and status not in PRODUCT_STATUSES:
            raise InvalidProductError(f"Unknown product status: {status}")

        query = 'SELECT * FROM products WHERE 1=1'
        params: List[Any] = []
        if category:
            params.append(category)
            query += f' AND category = ${len(params)}'
        if status:
            params.append(status)
            query += f' AND status = ${len(params)}'
        query += ' ORDER BY product_id'

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [dict(row) for row in rows]

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        """Get a product by its identifier.

        Raises:
            ProductNotFoundError: If the product doesn't exist
        """
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('SELECT * FROM products WHERE product_id = $1', product_id)
        if not row:
            raise ProductNotFoundError(product_id)
        return dict(row)

    async def create_product(
        self,
        name: str,
        category: str,
        price: Any,
        unit: str,
        quantity: int = 0,
        description: str = '',
        manufacturer: str = '',
        batch_number: Optional[str] = None,
        manufacture_date: Optional[date] = None,
        expiry_date: Optional[date] = None,
        image_url: Optional[str] = None,
        blockchain_id: Optional[str] = None,
        manufacturer_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a new catalog product with the next PRD identifier.

        Args:
            name: Product name
            category: Product category
            price: Unit price (non-negative)
            unit: Unit of measure (e.g. "box", "strip")
            quantity: Initial on-hand quantity
            manufacturer_address: Optional wallet of the supplying party; must
                                  be a manufacturer (or admin). Its company
                                  name is used when `manufacturer` is empty.

        Returns:
            Dict containing the created product

        Raises:
            InvalidProductError: If input fails validation
            PartyNotFoundError: If manufacturer_address is not registered
        """
        for field, value in (('name', name), ('category', category), ('unit', unit)):
            if not value:
                raise InvalidProductError(f"Missing required field: {field}")
        price = _validate_price(price)
        quantity = _validate_quantity(quantity)
        if manufacture_date and expiry_date and expiry_date < manufacture_date:
            raise InvalidProductError("Expiry date cannot be before manufacture date")

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            if manufacturer_address:
                supplier = await find_party(conn, manufacturer_address)
                if not supplier:
                    raise PartyNotFoundError(normalize_address(manufacturer_address))
                if supplier['role'] not in SUPPLIER_ROLES:
                    raise InvalidProductError(
                        f"Party {supplier['wallet_address']} with role {supplier['role']} "
                        "cannot create catalog products"
                    )
                manufacturer = manufacturer or supplier['company_name']

            async with conn.transaction():
                product_id = await reserve_identifier(
                    conn, 'product', PRODUCT_PREFIX, 'products', 'product_id'
                )
                row = await conn.fetchrow(
                    '''
                    INSERT INTO products (
                        product_id, name, category, description, manufacturer,
                        batch_number, manufacture_date, expiry_date, price,
                        quantity, unit, image_url, status, blockchain_id
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                    RETURNING *
                    ''',
                    product_id, name, category, description or '', manufacturer or '',
                    batch_number, manufacture_date, expiry_date, price,
                    quantity, unit, image_url, derive_status(quantity), blockchain_id
                )

        logger.info(f"Created product {product_id} ({name}, qty={quantity})")
        return dict(row)

    async def update_product(self, product_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Update product fields; status follows any quantity change.

        Raises:
            InvalidProductError: If no updatable field is supplied or a value is invalid
            ProductNotFoundError: If the product doesn't exist
        """
        updates = _validate_updates(fields)
        if not updates:
            raise InvalidProductError("No updatable fields provided")

        set_clauses = []
        params: List[Any] = [product_id]
        for idx, (column, value) in enumerate(updates.items(), start=2):
            set_clauses.append(f"{column} = ${idx}")
            params.append(value)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                UPDATE products
                SET {", ".join(set_clauses)}, updated_at = now()
                WHERE product_id = $1
                RETURNING *
                ''',
                *params
            )

        if not row:
            raise ProductNotFoundError(product_id)
        return dict(row)

    async def delete_product(self, product_id: str) -> None:
        """Delete a product.

        Raises:
            ProductNotFoundError: If the product doesn't exist
        """
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            deleted = await conn.fetchval(
                'DELETE FROM products WHERE product_id = $1 RETURNING product_id',
                product_id
            )
        if not deleted:
            raise ProductNotFoundError(product_id)
        logger.info(f"Deleted product {product_id}")

__all__ = [
    'ProductManager',
    'CatalogError',
    'ProductNotFoundError',
    'InvalidProductError',
    'derive_status',
    'LOW_STOCK_THRESHOLD',
    'PRODUCT_STATUSES',
    'STATUS_AVAILABLE',
    'STATUS_LOW_STOCK',
    'STATUS_OUT_OF_STOCK',
    'PRODUCT_PREFIX',
    'ORDER_PREFIX',
    'format_identifier',
    'parse_identifier_suffix',
    'next_identifier',
    'reserve_identifier'
]
