"""Mapping of domain errors onto HTTP responses.

Every domain exception carries a `kind`; the response detail is
``{"error": kind, "message": text}`` so clients can branch on the kind.
"""
import logging

from fastapi import HTTPException, status

from auth import AuthError
from catalog import CatalogError
from chain import ChainBridgeError
from database import DatabaseError
from inventory import InventoryError
from orders import OrderError
from parties import PartyError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    'not_found': status.HTTP_404_NOT_FOUND,
    'forbidden': status.HTTP_403_FORBIDDEN,
    'validation': status.HTTP_400_BAD_REQUEST,
    'conflict': status.HTTP_409_CONFLICT,
    'upstream_failure': status.HTTP_502_BAD_GATEWAY,
    'internal': status.HTTP_500_INTERNAL_SERVER_ERROR,
}

DOMAIN_ERRORS = (
    PartyError,
    CatalogError,
    InventoryError,
    OrderError,
    ChainBridgeError,
    AuthError,
    DatabaseError
)

def error_response(kind: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"error": kind, "message": message}
    )

def http_error(e: Exception) -> HTTPException:
    """Translate a domain exception (or anything unexpected) to an HTTPException."""
    kind = getattr(e, 'kind', 'internal')
    if kind not in STATUS_BY_KIND:
        kind = 'internal'
    if kind == 'internal':
        logger.error(f"Unexpected error: {e}")
    elif kind == 'upstream_failure':
        logger.error(f"Upstream failure: {e}")
    else:
        logger.warning(f"Request rejected ({kind}): {e}")
    return error_response(kind, str(e))

__all__ = ['http_error', 'error_response', 'DOMAIN_ERRORS', 'STATUS_BY_KIND']
