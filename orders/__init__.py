"""Orders module for the supply-chain order workflow.

This module handles order creation, lookup and status changes. Creation
locks the rows it draws stock from, validates the whole request before the
first write, and commits stock movement, the order and its first tracking
entry in a single transaction. Orders can optionally be anchored on chain
through the chain bridge; a bridge failure aborts the transaction.
"""
import logging
from typing import Any, Dict, List, Optional

from asyncpg.pool import Pool
from asyncpg.exceptions import PostgresError

from catalog import ORDER_PREFIX, reserve_identifier
from chain import bridge as default_bridge, ChainBridge, ChainBridgeError, BridgeDisabledError
from config import settings_conf
from database import get_pool
from database.exceptions import DatabaseError
from inventory import cache as inventory_cache, InventoryItemNotFoundError
from parties import find_party, normalize_address, PartyNotFoundError
from .exceptions import (
    OrderError,
    OrderNotFoundError,
    InvalidOrderError,
    InsufficientStockError,
    InvalidTransitionError
)
from .planning import plan_order, plan_transfer
from .status import (
    OrderStatus,
    TERMINAL_STATUSES,
    check_transition,
    parse_status,
    sanitize_order_update
)

logger = logging.getLogger(__name__)

KIND_CATALOG = 'catalog'
KIND_TRANSFER = 'transfer'

# Party columns exposed on joined orders
PARTY_DISPLAY_FIELDS = ('name', 'company_name', 'role', 'location')

async def _resolve_party(conn, address: str) -> Dict[str, Any]:
    party = await find_party(conn, address)
    if not party:
        raise PartyNotFoundError(normalize_address(address))
    return party

def _normalize_lines(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    lines = []
    for item in items or []:
        if not isinstance(item, dict):
            raise InvalidOrderError(f"Invalid order item: {item!r}")
        lines.append({
            'product_id': item.get('product_id') or item.get('productId'),
            'quantity': item.get('quantity')
        })
    return lines

class OrderManager:
    """Manages order creation, lookups and state transitions."""

    def __init__(self, pool: Optional[Pool] = None, chain_bridge: Optional[ChainBridge] = None) -> None:
        """Initialize order manager.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
            chain_bridge: Optional bridge client. Defaults to the global bridge.
        """
        self.pool = pool
        self.bridge = chain_bridge or default_bridge

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    def _metadata_uri(self, order_id: str, metadata_uri: Optional[str]) -> str:
        return metadata_uri or f"{settings_conf['metadata_base_uri']}{order_id}"

    async def _insert_order(
        self,
        conn,
        order_id: str,
        kind: str,
        buyer_address: str,
        seller_address: str,
        plan: Dict[str, Any],
        shipping_address: Optional[str],
        metadata_uri: str,
        chain_result: Optional[Dict[str, Any]],
        description: str
    ):
        order = await conn.fetchrow(
            '''
            INSERT INTO orders (
                order_id, kind, buyer_address, seller_address, total_amount,
                status, shipping_address, metadata_uri, transaction_hash,
                blockchain_order_id
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING id
            ''',
            order_id,
            kind,
            buyer_address,
            seller_address,
            plan['total'],
            OrderStatus.PENDING.value,
            shipping_address or '',
            metadata_uri,
            chain_result['transaction_hash'] if chain_result else None,
            order_id if chain_result else None
        )

        await conn.executemany(
            '''
            INSERT INTO order_items (order_id, position, product_id, name, quantity, price)
            VALUES ($1, $2, $3, $4, $5, $6)
            ''',
            [
                (order['id'], position, item['product_id'], item['name'], item['quantity'], item['price'])
                for position, item in enumerate(plan['items'])
            ]
        )

        await conn.execute(
            '''
            INSERT INTO order_tracking (order_id, status, description)
            VALUES ($1, $2, $3)
            ''',
            order['id'],
            OrderStatus.PENDING.value,
            description
        )

    async def create_order(
        self,
        buyer_address: str,
        seller_address: str,
        items: List[Dict[str, Any]],
        shipping_address: Optional[str] = None,
        metadata_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        """Place a catalog order.

        Args:
            buyer_address: Wallet address of the buying party
            seller_address: Wallet address of the selling party
            items: Cart lines, each a dict with product_id and quantity
            shipping_address: Optional free-text delivery address
            metadata_uri: Optional metadata reference for the chain record

        Returns:
            The created order, joined with parties, items and tracking

        Raises:
            PartyNotFoundError: If buyer or seller is not registered
            ProductNotFoundError: If a line names an unknown product
            InvalidOrderError: If the cart is empty or malformed
            InsufficientStockError: If a product cannot cover its lines
            ChainBridgeError: If anchoring the order on chain fails
        """
        lines = _normalize_lines(items)
        if not lines:
            raise InvalidOrderError("Order must contain at least one item")

        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                buyer = await _resolve_party(conn, buyer_address)
                seller = await _resolve_party(conn, seller_address)

                async with conn.transaction():
                    product_ids = sorted({line['product_id'] for line in lines if line['product_id']})
                    rows = await conn.fetch(
                        '''
                        SELECT * FROM products
                        WHERE product_id = ANY($1::TEXT[])
                        ORDER BY product_id
                        FOR UPDATE
                        ''',
                        product_ids
                    )
                    plan = plan_order(lines, {row['product_id']: dict(row) for row in rows})

                    order_id = await reserve_identifier(
                        conn, 'order', ORDER_PREFIX, 'orders', 'order_id'
                    )
                    metadata_uri = self._metadata_uri(order_id, metadata_uri)

                    chain_result = None
                    if self.bridge.enabled:
                        chain_result = self.bridge.create_order(order_id, metadata_uri, plan['total'])

                    for decrement in plan['decrements']:
                        updated = await conn.fetchval(
                            '''
                            UPDATE products
                            SET quantity = quantity - $2, status = $3, updated_at = now()
                            WHERE product_id = $1 AND quantity >= $2
                            RETURNING product_id
                            ''',
                            decrement['product_id'],
                            decrement['quantity'],
                            decrement['new_status']
                        )
                        if not updated:
                            raise InsufficientStockError(
                                decrement['name'],
                                decrement['new_quantity'] + decrement['quantity'],
                                decrement['quantity']
                            )

                    await self._insert_order(
                        conn,
                        order_id,
                        KIND_CATALOG,
                        buyer['wallet_address'],
                        seller['wallet_address'],
                        plan,
                        shipping_address,
                        metadata_uri,
                        chain_result,
                        'Order placed'
                    )

                order = await self._load_order(conn, order_id)

        except ChainBridgeError as e:
            logger.error(f"Chain bridge rejected new order, nothing persisted: {e}")
            raise
        except PostgresError as e:
            logger.error(f"Database error creating order: {e}")
            raise DatabaseError(f"Failed to create order: {e}")

        logger.info(
            f"Order {order_id} created: {buyer['wallet_address']} <- {seller['wallet_address']}, "
            f"total {plan['total']}"
        )
        return order

    async def create_transfer_order(
        self,
        buyer_address: str,
        seller_address: str,
        item_name: str,
        quantity: int,
        metadata_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        """Move inventory from the seller's ledger to the buyer's as an anchored order.

        The chain bridge is called before any inventory is touched; when it
        fails the transaction is abandoned and both ledgers stay as they were.

        Raises:
            BridgeDisabledError: If the chain bridge is switched off
            PartyNotFoundError: If buyer or seller is not registered
            InventoryItemNotFoundError: If the seller holds no such item
            InsufficientStockError: If the seller holds fewer units
            ChainBridgeError: If anchoring the order on chain fails
        """
        if not self.bridge.enabled:
            raise BridgeDisabledError("Transfer orders require the chain bridge to be enabled")
        if not item_name:
            raise InvalidOrderError("Missing required field: item_name")

        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                buyer = await _resolve_party(conn, buyer_address)
                seller = await _resolve_party(conn, seller_address)
                buyer_address = buyer['wallet_address']
                seller_address = seller['wallet_address']
                if buyer_address == seller_address:
                    raise InvalidOrderError("Buyer and seller must be different parties")

                async with conn.transaction():
                    item = await conn.fetchrow(
                        '''
                        SELECT * FROM inventory_items
                        WHERE wallet_address = $1 AND name = $2
                        FOR UPDATE
                        ''',
                        seller_address,
                        item_name
                    )
                    if not item:
                        raise InventoryItemNotFoundError(seller_address, item_name)
                    plan = plan_transfer(dict(item), quantity)

                    order_id = await reserve_identifier(
                        conn, 'order', ORDER_PREFIX, 'orders', 'order_id'
                    )
                    metadata_uri = self._metadata_uri(order_id, metadata_uri)
                    chain_result = self.bridge.create_order(order_id, metadata_uri, plan['total'])

                    await conn.execute(
                        '''
                        UPDATE inventory_items
                        SET quantity = $3, updated_at = now()
                        WHERE wallet_address = $1 AND name = $2
                        ''',
                        seller_address,
                        item_name,
                        plan['remaining']
                    )
                    await conn.execute(
                        '''
                        INSERT INTO inventory_items (
                            wallet_address, name, description, quantity, price, category, image_url
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                        ON CONFLICT (wallet_address, name) DO UPDATE
                        SET quantity = inventory_items.quantity + EXCLUDED.quantity,
                            updated_at = now()
                        ''',
                        buyer_address,
                        item_name,
                        item['description'],
                        plan['items'][0]['quantity'],
                        item['price'],
                        item['category'],
                        item['image_url']
                    )

                    await self._insert_order(
                        conn,
                        order_id,
                        KIND_TRANSFER,
                        buyer_address,
                        seller_address,
                        plan,
                        None,
                        metadata_uri,
                        chain_result,
                        'Inventory transferred'
                    )

                order = await self._load_order(conn, order_id)

        except ChainBridgeError as e:
            logger.error(f"Chain bridge rejected transfer of {item_name}, nothing persisted: {e}")
            raise
        except PostgresError as e:
            logger.error(f"Database error creating transfer order: {e}")
            raise DatabaseError(f"Failed to create transfer order: {e}")

        inventory_cache.invalidate(seller_address, buyer_address)
        logger.info(
            f"Transfer order {order_id} committed: {plan['items'][0]['quantity']} x {item_name} "
            f"from {seller_address} to {buyer_address}"
        )
        return order

    async def _load_order(self, conn, order_id: str) -> Optional[Dict[str, Any]]:
        order = await conn.fetchrow(
            '''
            SELECT
                o.*,
                b.name AS buyer_name,
                b.company_name AS buyer_company_name,
                b.role AS buyer_role,
                b.location AS buyer_location,
                s.name AS seller_name,
                s.company_name AS seller_company_name,
                s.role AS seller_role,
                s.location AS seller_location
            FROM orders o
            JOIN parties b ON b.wallet_address = o.buyer_address
            JOIN parties s ON s.wallet_address = o.seller_address
            WHERE o.order_id = $1
            ''',
            order_id
        )
        if not order:
            return None

        items = await conn.fetch(
            '''
            SELECT
                oi.position,
                oi.product_id,
                oi.name,
                oi.quantity,
                oi.price,
                p.name AS product_name,
                p.category AS product_category,
                p.unit AS product_unit,
                p.status AS product_status
            FROM order_items oi
            LEFT JOIN products p ON p.product_id = oi.product_id
            WHERE oi.order_id = $1
            ORDER BY oi.position
            ''',
            order['id']
        )

        tracking = await conn.fetch(
            '''
            SELECT status, description, created_at
            FROM order_tracking
            WHERE order_id = $1
            ORDER BY created_at
            ''',
            order['id']
        )

        result = dict(order)
        for side in ('buyer', 'seller'):
            result[side] = {'wallet_address': result[f'{side}_address']}
            for field in PARTY_DISPLAY_FIELDS:
                result[side][field] = result.pop(f'{side}_{field}')

        result['items'] = []
        for item in items:
            entry = {
                'product_id': item['product_id'],
                'name': item['name'],
                'quantity': item['quantity'],
                'price': item['price'],
                'product': None
            }
            if item['product_name'] is not None:
                entry['product'] = {
                    'product_id': item['product_id'],
                    'name': item['product_name'],
                    'category': item['product_category'],
                    'unit': item['product_unit'],
                    'status': item['product_status']
                }
            result['items'].append(entry)

        result['tracking'] = [dict(entry) for entry in tracking]
        return result

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        """Get a joined order by its ORD identifier.

        Raises:
            OrderNotFoundError: If the order doesn't exist
        """
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            order = await self._load_order(conn, order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    async def search_orders(
        self,
        buyer_address: Optional[str] = None,
        seller_address: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Search orders with various filters.

        Args:
            buyer_address: Optional buyer address to filter by
            seller_address: Optional seller address to filter by
            status: Optional order status to filter by
            limit: Maximum number of results to return
            offset: Number of results to skip

        Returns:
            List of matching joined orders, newest first
        """
        if limit <= 0 or offset < 0:
            raise InvalidOrderError("limit must be positive and offset non-negative")

        query = """
            SELECT o.order_id
            FROM orders o
            WHERE 1=1
        """
        params: List[Any] = []
        param_idx = 1

        if buyer_address:
            query += f" AND o.buyer_address = ${param_idx}"
            params.append(normalize_address(buyer_address))
            param_idx += 1

        if seller_address:
            query += f" AND o.seller_address = ${param_idx}"
            params.append(normalize_address(seller_address))
            param_idx += 1

        if status:
            query += f" AND o.status = ${param_idx}"
            params.append(parse_status(status).value)
            param_idx += 1

        query += f" ORDER BY o.created_at DESC, o.order_id DESC LIMIT ${param_idx} OFFSET ${param_idx + 1}"
        params.extend([limit, offset])

        logger.debug("Executing order search query: %s with params: %r", query, params)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
            results = []
            for row in rows:
                order = await self._load_order(conn, row['order_id'])
                if order:
                    results.append(order)
        return results

    async def update_order(self, order_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update to an order.

        Buyer, seller, identifier, items and total are dropped from `fields`
        unconditionally. A status change must follow the transition table;
        when `tracking_update` accompanies a status, a tracking entry is
        appended. Anchored orders are accepted/completed on chain before the
        local write commits.

        Raises:
            InvalidOrderError: If nothing updatable is supplied
            OrderNotFoundError: If the order doesn't exist
            InvalidTransitionError: If the status change is not allowed
            ChainBridgeError: If the on-chain acceptance/completion fails
        """
        updates = sanitize_order_update(fields)
        if not updates:
            raise InvalidOrderError("No updatable fields provided")

        requested_status = updates.pop('status', None)
        tracking_update = updates.pop('tracking_update', None)
        if requested_status is not None:
            requested_status = parse_status(requested_status)

        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        'SELECT * FROM orders WHERE order_id = $1 FOR UPDATE',
                        order_id
                    )
                    if not current:
                        raise OrderNotFoundError(order_id)

                    new_status = None
                    if requested_status is not None:
                        try:
                            new_status = check_transition(current['status'], requested_status)
                        except InvalidTransitionError:
                            logger.warning(
                                f"Rejected status change for {order_id}: "
                                f"{current['status']} -> {requested_status.value}"
                            )
                            raise

                    if new_status is not None:
                        self._sync_chain_status(current, new_status)
                        updates['status'] = new_status.value

                    set_clauses = []
                    params: List[Any] = [order_id]
                    for idx, (column, value) in enumerate(updates.items(), start=2):
                        set_clauses.append(f"{column} = ${idx}")
                        params.append(value)
                    set_clauses.append("updated_at = now()")

                    await conn.execute(
                        f"UPDATE orders SET {', '.join(set_clauses)} WHERE order_id = $1",
                        *params
                    )

                    if requested_status is not None and tracking_update:
                        await conn.execute(
                            '''
                            INSERT INTO order_tracking (order_id, status, description)
                            VALUES ($1, $2, $3)
                            ''',
                            current['id'],
                            requested_status.value,
                            tracking_update
                        )

                order = await self._load_order(conn, order_id)
        except PostgresError as e:
            logger.error(f"Database error updating order {order_id}: {e}")
            raise DatabaseError(f"Failed to update order: {e}")

        if new_status is not None:
            logger.info(f"Order {order_id} moved {current['status']} -> {new_status.value}")
            if new_status in TERMINAL_STATUSES:
                logger.info(f"Order {order_id} reached terminal status {new_status.value}")
        return order

    def _sync_chain_status(self, order, new_status: OrderStatus) -> None:
        if not order['blockchain_order_id'] or not self.bridge.enabled:
            return
        if new_status == OrderStatus.PROCESSING:
            self.bridge.accept_order(order['blockchain_order_id'])
        elif new_status == OrderStatus.COMPLETED:
            self.bridge.complete_order(order['blockchain_order_id'])

    async def link_chain(
        self,
        order_id: str,
        transaction_hash: Optional[str] = None,
        blockchain_order_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Record the on-chain linkage of an order.

        Raises:
            InvalidOrderError: If neither value is supplied
            OrderNotFoundError: If the order doesn't exist
        """
        updates = {}
        if transaction_hash:
            updates['transaction_hash'] = transaction_hash
        if blockchain_order_id:
            updates['blockchain_order_id'] = blockchain_order_id
        if not updates:
            raise InvalidOrderError("transaction_hash or blockchain_order_id is required")

        set_clauses = []
        params: List[Any] = [order_id]
        for idx, (column, value) in enumerate(updates.items(), start=2):
            set_clauses.append(f"{column} = ${idx}")
            params.append(value)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            linked = await conn.fetchval(
                f'''
                UPDATE orders
                SET {", ".join(set_clauses)}, updated_at = now()
                WHERE order_id = $1
                RETURNING order_id
                ''',
                *params
            )
            if not linked:
                raise OrderNotFoundError(order_id)
            order = await self._load_order(conn, order_id)

        logger.info(f"Linked order {order_id} to chain: {updates}")
        return order

__all__ = [
    'OrderManager',
    'OrderStatus',
    'OrderError',
    'OrderNotFoundError',
    'InvalidOrderError',
    'InsufficientStockError',
    'InvalidTransitionError',
    'plan_order',
    'plan_transfer'
]
