"""Party inventory API endpoints."""

import logging
from decimal import Decimal
from fastapi import APIRouter, Query, status
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from inventory import InventoryManager
from api.errors import http_error, error_response, DOMAIN_ERRORS

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/inventory",
    tags=["Inventory"]
)

class CreateItemRequest(BaseModel):
    """Request model for adding an inventory item."""
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(alias="walletAddress")
    name: str
    description: str = ""
    quantity: int
    price: Decimal
    category: str
    image_url: Optional[str] = Field(None, alias="imageUrl")

class UpdateItemRequest(BaseModel):
    """Request model for updating an inventory item, addressed by wallet and name."""
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(alias="walletAddress")
    name: str
    description: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")

@router.get("")
async def list_items(wallet_address: str = Query(..., alias="walletAddress")):
    """List a party's inventory."""
    try:
        return await InventoryManager().list_items(wallet_address)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.get("/by-role")
async def list_by_role(role: str = Query(..., description="Party role to group inventory for")):
    """Inventory of every party with the given role."""
    try:
        return await InventoryManager().list_by_role(role)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(request: CreateItemRequest):
    """Add an item to a party's inventory."""
    try:
        return await InventoryManager().create_item(**request.model_dump())
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.put("")
async def update_item(request: UpdateItemRequest):
    """Update an inventory item."""
    try:
        fields = request.model_dump(exclude_unset=True, exclude={'wallet_address', 'name'})
        return await InventoryManager().update_item(request.wallet_address, request.name, fields)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.delete("")
async def delete_item(
    wallet_address: str = Query(..., alias="walletAddress"),
    name: str = Query(...)
):
    """Remove an item from a party's inventory."""
    try:
        await InventoryManager().delete_item(wallet_address, name)
        return {"success": True}
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

# Export the router
__all__ = ['router']
