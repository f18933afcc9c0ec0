"""System health endpoints."""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter
from typing import Optional
from pydantic import BaseModel
from database import get_pool
from chain import bridge, ChainBridgeError

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/system",
    tags=["System"]
)

class SystemHealth(BaseModel):
    """Model for system health data."""
    status: str
    database_status: str
    chain_status: str
    checked_at: datetime
    database_error: Optional[str] = None
    chain_error: Optional[str] = None

async def check_database() -> Optional[str]:
    """Run a trivial query; returns the error text on failure."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            await conn.fetchval('SELECT 1')
        return None
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return str(e)

def check_chain() -> Optional[str]:
    """Ping the chain gateway; returns the error text on failure."""
    try:
        bridge.ping()
        return None
    except ChainBridgeError as e:
        logger.error(f"Chain bridge health check failed: {e}")
        return str(e)

@router.get("/health")
async def get_system_health() -> SystemHealth:
    """Get system health status.

    Returns:
        SystemHealth object with database and chain bridge status
    """
    database_error = await check_database()

    if bridge.enabled:
        chain_error = check_chain()
        chain_status = "connected" if chain_error is None else "unreachable"
    else:
        chain_error = None
        chain_status = "disabled"

    healthy = database_error is None and chain_error is None
    return SystemHealth(
        status="healthy" if healthy else "degraded",
        database_status="connected" if database_error is None else "unreachable",
        chain_status=chain_status,
        checked_at=datetime.now(timezone.utc),
        database_error=database_error,
        chain_error=chain_error
    )

# Export the router
__all__ = ['router']
