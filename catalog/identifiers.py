"""Sequential human-readable identifiers (PRD-001, ORD-042, ...).

Identifiers are a fixed prefix plus a zero-padded counter. The next value is
reserved through a row in ``id_counters`` incremented inside the caller's
transaction, so two concurrent creates can never be handed the same value.
A missing counter row is seeded from the highest suffix already stored in
the target table, which keeps sequences continuous over pre-existing data.
"""
from typing import Optional

ID_WIDTH = 3

PRODUCT_PREFIX = 'PRD-'
ORDER_PREFIX = 'ORD-'

def format_identifier(prefix: str, value: int, width: int = ID_WIDTH) -> str:
    """format_identifier('PRD-', 4) -> 'PRD-004'"""
    return f"{prefix}{value:0{width}d}"

def parse_identifier_suffix(identifier: Optional[str]) -> Optional[int]:
    """Numeric suffix of an identifier, or None if it has none."""
    if not identifier or '-' not in identifier:
        return None
    suffix = identifier.rsplit('-', 1)[1]
    if not suffix.isdigit():
        return None
    return int(suffix)

def next_identifier(prefix: str, last_identifier: Optional[str] = None) -> str:
    """The identifier following `last_identifier`; the first one when None."""
    return format_identifier(prefix, (parse_identifier_suffix(last_identifier) or 0) + 1)

async def _highest_suffix(conn, table: str, column: str, prefix: str) -> int:
    rows = await conn.fetch(
        f"SELECT {column} AS identifier FROM {table} WHERE {column} LIKE $1 || '%'",
        prefix
    )
    suffixes = [parse_identifier_suffix(row['identifier']) for row in rows]
    return max((s for s in suffixes if s is not None), default=0)

async def reserve_identifier(conn, counter: str, prefix: str, table: str, column: str) -> str:
    """Reserve the next identifier of a family.

    Must run inside a transaction on `conn`; the counter row stays locked
    until that transaction ends, serializing concurrent reservations. A rolled
    back transaction gives its value back.

    Args:
        conn: Connection with an open transaction
        counter: Counter row name (e.g. 'product')
        prefix: Identifier prefix (e.g. 'PRD-')
        table: Table holding existing identifiers, used to seed the counter
        column: Identifier column in `table`
    """
    value = await conn.fetchval(
        'UPDATE id_counters SET value = value + 1 WHERE name = $1 RETURNING value',
        counter
    )
    if value is None:
        seed = await _highest_suffix(conn, table, column, prefix)
        value = await conn.fetchval(
            '''
            INSERT INTO id_counters (name, value) VALUES ($1, $2)
            ON CONFLICT (name) DO UPDATE SET value = id_counters.value + 1
            RETURNING value
            ''',
            counter,
            seed + 1
        )
    return format_identifier(prefix, value)
