"""Parties module: the identity directory of supply-chain actors.

A party is a registered actor (provider, manufacturer, distributor, retailer
or admin) identified by its wallet address. Addresses are normalized to
lowercase before every lookup and write, so two spellings of the same address
always resolve to the same party.
"""

import logging
from typing import Any, Dict, List, Optional

from asyncpg.exceptions import UniqueViolationError

from database import get_pool

logger = logging.getLogger(__name__)

ROLES = ('provider', 'manufacturer', 'distributor', 'retailer', 'admin')

# User-mutable profile fields
MUTABLE_FIELDS = {
    'name',
    'company_name',
    'email',
    'phone',
    'location',
    'registration_id',
    'license_number'
}

# Fields that only a privileged path may change
PROTECTED_FIELDS = {
    'wallet_address',
    'role',
    'verified',
    'created_at',
    'updated_at'
}

class PartyError(Exception):
    """Base exception for party operations."""
    kind = 'internal'

class PartyNotFoundError(PartyError):
    """Raised when no party is registered for an address."""
    kind = 'not_found'

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"No party registered for address {address}")

class PartyExistsError(PartyError):
    """Raised when registering an address that already has a party."""
    kind = 'conflict'

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"A party with wallet address {address} already exists")

class InvalidPartyError(PartyError):
    """Raised when party input fails validation."""
    kind = 'validation'

def normalize_address(address: Optional[str]) -> str:
    """Return the canonical (trimmed, lowercase) form of a wallet address."""
    if address is None or not str(address).strip():
        raise InvalidPartyError("Wallet address is required")
    return str(address).strip().lower()

def sanitize_party_update(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the profile fields a party may change about itself.

    Address, role and verification flag are dropped unconditionally.
    """
    dropped = set(fields) - MUTABLE_FIELDS
    if dropped & PROTECTED_FIELDS:
        logger.warning(f"Ignoring protected party fields in update: {sorted(dropped & PROTECTED_FIELDS)}")
    return {key: value for key, value in fields.items() if key in MUTABLE_FIELDS}

async def find_party(conn, address: str) -> Optional[Dict[str, Any]]:
    """Look up a party on an existing connection; None when absent."""
    row = await conn.fetchrow(
        'SELECT * FROM parties WHERE wallet_address = $1',
        normalize_address(address)
    )
    return dict(row) if row else None

class PartyManager:
    """Manager class for the identity directory."""

    def __init__(self, pool=None):
        """Initialize the party manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def get_party(self, address: str) -> Dict[str, Any]:
        """Resolve a wallet address to its party.

        Raises:
            PartyNotFoundError: If nobody is registered for the address
        """
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            party = await find_party(conn, address)
        if not party:
            raise PartyNotFoundError(normalize_address(address))
        return party

    async def list_parties(self, role: Optional[str] = None) -> List[Dict[str, Any]]:
        """List parties, optionally only those with a given role."""
        if role is not None and role not in ROLES:
            raise InvalidPartyError(f"Unknown role: {role}")

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            if role:
                rows = await conn.fetch(
                    'SELECT * FROM parties WHERE role = $1 ORDER BY created_at',
                    role
                )
            else:
                rows = await conn.fetch('SELECT * FROM parties ORDER BY created_at')
        return [dict(row) for row in rows]

    async def register_party(
        self,
        wallet_address: str,
        role: str,
        name: str,
        company_name: str,
        email: str,
        phone: str = '',
        location: str = '',
        registration_id: str = '',
        license_number: str = ''
    ) -> Dict[str, Any]:
        """Register a new party. New parties always start unverified.

        Raises:
            InvalidPartyError: If the role or a required field is invalid
            PartyExistsError: If the (normalized) address is already registered
        """
        address = normalize_address(wallet_address)
        if role not in ROLES:
            raise InvalidPartyError(f"Unknown role: {role}")
        for field, value in (('name', name), ('company_name', company_name), ('email', email)):
            if not value or not str(value).strip():
                raise InvalidPartyError(f"Missing required field: {field}")

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            if await find_party(conn, address):
                raise PartyExistsError(address)

            try:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO parties (
                        wallet_address, role, name, company_name, email,
                        phone, location, registration_id, license_number, verified
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, false)
                    RETURNING *
                    ''',
                    address, role, name, company_name, email,
                    phone or '', location or '', registration_id or '', license_number or ''
                )
            except UniqueViolationError:
                # Lost a race with a concurrent registration of the same address
                raise PartyExistsError(address)

        logger.info(f"Registered {role} party {address}")
        return dict(row)

    async def update_party(self, address: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Update a party's profile fields.

        Raises:
            InvalidPartyError: If no updatable field is supplied
            PartyNotFoundError: If the party doesn't exist
        """
        address = normalize_address(address)
        updates = sanitize_party_update(fields)
        if not updates:
            raise InvalidPartyError("No updatable fields provided")

        set_clauses = []
        params: List[Any] = [address]
        for idx, (column, value) in enumerate(updates.items(), start=2):
            set_clauses.append(f"{column} = ${idx}")
            params.append(value)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                UPDATE parties
                SET {", ".join(set_clauses)}, updated_at = now()
                WHERE wallet_address = $1
                RETURNING *
                ''',
                *params
            )

        if not row:
            raise PartyNotFoundError(address)
        return dict(row)

__all__ = [
    'PartyManager',
    'PartyError',
    'PartyNotFoundError',
    'PartyExistsError',
    'InvalidPartyError',
    'ROLES',
    'normalize_address',
    'sanitize_party_update',
    'find_party'
]
