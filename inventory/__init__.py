"""Inventory module for per-party stock ledgers.

Each party owns a set of inventory items keyed by (wallet address, item
name). Listings are served through a process-local read-through cache; every
write evicts the affected address after its transaction commits.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from asyncpg.exceptions import UniqueViolationError

from database import get_pool
from parties import ROLES, InvalidPartyError, normalize_address
from .cache import InventoryCache

logger = logging.getLogger(__name__)

# Shared by every InventoryManager in the process
cache = InventoryCache()

# Fields that may be changed on an existing item; the key is fixed
MUTABLE_FIELDS = {
    'description',
    'quantity',
    'price',
    'category',
    'image_url'
}

# Mutable fields backed by NOT NULL columns
REQUIRED_FIELDS = ('description', 'quantity', 'price', 'category')

class InventoryError(Exception):
    """Base exception for inventory operations."""
    kind = 'internal'

class InventoryItemNotFoundError(InventoryError):
    """Raised when an inventory item does not exist."""
    kind = 'not_found'

    def __init__(self, address: str, name: str):
        self.address = address
        self.name = name
        super().__init__(f"Inventory item '{name}' not found for {address}")

class InventoryItemExistsError(InventoryError):
    """Raised when creating an item whose (address, name) already exists."""
    kind = 'conflict'

    def __init__(self, address: str, name: str):
        self.address = address
        self.name = name
        super().__init__(f"Inventory item '{name}' already exists for {address}")

class InvalidInventoryError(InventoryError):
    """Raised when inventory input fails validation."""
    kind = 'validation'

def _validate_quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInventoryError(f"Quantity must be a non-negative integer, got {value!r}")
    return value

def _validate_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInventoryError(f"Invalid price: {value!r}")
    if not price.is_finite() or price < 0:
        raise InvalidInventoryError(f"Price must be a non-negative number, got {value!r}")
    return price

def _normalize(address: str) -> str:
    try:
        return normalize_address(address)
    except InvalidPartyError as e:
        raise InvalidInventoryError(str(e)) from e

class InventoryManager:
    """Manager class for party inventory."""

    def __init__(self, pool=None, item_cache: Optional[InventoryCache] = None):
        """Initialize the inventory manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            item_cache: Optional cache; defaults to the module-wide cache.
        """
        self.pool = pool
        self.cache = item_cache if item_cache is not None else cache

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_items(self, address: str) -> List[Dict[str, Any]]:
        """List a party's inventory, served from cache when possible."""
        address = _normalize(address)
        cached = self.cache.get(address)
        if cached is not None:
            return cached

        generation = self.cache.generation(address)
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                'SELECT * FROM inventory_items WHERE wallet_address = $1 ORDER BY name',
                address
            )
        items = [dict(row) for row in rows]
        if not self.cache.set(address, items, generation):
            logger.debug(f"Inventory for {address} changed during read, not caching")
        return items

    async def get_item(self, address: str, name: str) -> Dict[str, Any]:
        """Get one inventory item.

        Raises:
            InventoryItemNotFoundError: If the item doesn't exist
        """
        address = _normalize(address)
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                'SELECT * FROM inventory_items WHERE wallet_address = $1 AND name = $2',
                address, name
            )
        if not row:
            raise InventoryItemNotFoundError(address, name)
        return dict(row)

    async def create_item(
        self,
        wallet_address: str,
        name: str,
        description: str,
        quantity: int,
        price: Any,
        category: str,
        image_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """Add an item to a party's inventory.

        Raises:
            InvalidInventoryError: If input fails validation
            InventoryItemExistsError: If the party already holds an item with this name
        """
        address = _normalize(wallet_address)
        if not name:
            raise InvalidInventoryError("Missing required field: name")
        if not category:
            raise InvalidInventoryError("Missing required field: category")
        quantity = _validate_quantity(quantity)
        price = _validate_price(price)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO inventory_items (
                        wallet_address, name, description, quantity, price, category, image_url
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING *
                    ''',
                    address, name, description or '', quantity, price, category, image_url
                )
            except UniqueViolationError:
                raise InventoryItemExistsError(address, name)

        self.cache.invalidate(address)
        logger.info(f"Created inventory item '{name}' for {address} (qty={quantity})")
        return dict(row)

    async def update_item(self, address: str, name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Update an inventory item.

        Raises:
            InvalidInventoryError: If no updatable field is supplied or a value is invalid
            InventoryItemNotFoundError: If the item doesn't exist
        """
        address = _normalize(address)
        updates = {key: value for key, value in fields.items() if key in MUTABLE_FIELDS}
        if not updates:
            raise InvalidInventoryError("No updatable fields provided")
        for key in REQUIRED_FIELDS:
            if key in updates and updates[key] is None:
                raise InvalidInventoryError(f"{key} cannot be null")
        if 'category' in updates and not updates['category']:
            raise InvalidInventoryError("category cannot be empty")
        if 'quantity' in updates:
            updates['quantity'] = _validate_quantity(updates['quantity'])
        if 'price' in updates:
            updates['price'] = _validate_price(updates['price'])

        set_clauses = []
        params: List[Any] = [address, name]
        for idx, (column, value) in enumerate(updates.items(), start=3):
            set_clauses.append(f"{column} = ${idx}")
            params.append(value)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                UPDATE inventory_items
                SET {", ".join(set_clauses)}, updated_at = now()
                WHERE wallet_address = $1 AND name = $2
                RETURNING *
                ''',
                *params
            )

        if not row:
            raise InventoryItemNotFoundError(address, name)
        self.cache.invalidate(address)
        return dict(row)

    async def delete_item(self, address: str, name: str) -> None:
        """Remove an item from a party's inventory.

        Raises:
            InventoryItemNotFoundError: If the item doesn't exist
        """
        address = _normalize(address)
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            deleted = await conn.fetchval(
                '''
                DELETE FROM inventory_items
                WHERE wallet_address = $1 AND name = $2
                RETURNING name
                ''',
                address, name
            )
        if not deleted:
            raise InventoryItemNotFoundError(address, name)
        self.cache.invalidate(address)
        logger.info(f"Deleted inventory item '{name}' for {address}")

    async def list_by_role(self, role: str) -> List[Dict[str, Any]]:
        """Inventory of every party with a role, grouped per party.

        Returns:
            List of dicts with wallet_address, name, company_name and items
        """
        if role not in ROLES:
            raise InvalidInventoryError(f"Unknown role: {role}")

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT
                    p.wallet_address AS party_address,
                    p.name AS party_name,
                    p.company_name,
                    i.*
                FROM parties p
                LEFT JOIN inventory_items i ON i.wallet_address = p.wallet_address
                WHERE p.role = $1
                ORDER BY p.created_at, p.wallet_address, i.name
                ''',
                role
            )

        groups: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            group = groups.setdefault(row['party_address'], {
                'wallet_address': row['party_address'],
                'name': row['party_name'],
                'company_name': row['company_name'],
                'items': []
            })
            if row['name'] is not None:
                group['items'].append({
                    'name': row['name'],
                    'description': row['description'],
                    'quantity': row['quantity'],
                    'price': row['price'],
                    'category': row['category'],
                    'image_url': row['image_url']
                })
        return list(groups.values())

__all__ = [
    'InventoryManager',
    'InventoryCache',
    'InventoryError',
    'InventoryItemNotFoundError',
    'InventoryItemExistsError',
    'InvalidInventoryError',
    'cache'
]
