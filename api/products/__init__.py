"""Catalog product API endpoints."""

import logging
from datetime import date
from decimal import Decimal
from fastapi import APIRouter, Query, status
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from catalog import ProductManager
from api.errors import http_error, error_response, DOMAIN_ERRORS

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/products",
    tags=["Products"]
)

class CreateProductRequest(BaseModel):
    """Request model for creating a product. Status is derived from quantity."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    category: str
    price: Decimal
    unit: str
    quantity: int = 0
    description: str = ""
    manufacturer: str = ""
    batch_number: Optional[str] = Field(None, alias="batchNumber")
    manufacture_date: Optional[date] = Field(None, alias="manufactureDate")
    expiry_date: Optional[date] = Field(None, alias="expiryDate")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    blockchain_id: Optional[str] = Field(None, alias="blockchainId")
    manufacturer_address: Optional[str] = Field(None, alias="manufacturerAddress")

class UpdateProductRequest(BaseModel):
    """Request model for updating a product."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = None
    unit: Optional[str] = None
    quantity: Optional[int] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    batch_number: Optional[str] = Field(None, alias="batchNumber")
    manufacture_date: Optional[date] = Field(None, alias="manufactureDate")
    expiry_date: Optional[date] = Field(None, alias="expiryDate")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    blockchain_id: Optional[str] = Field(None, alias="blockchainId")

@router.get("")
async def list_products(
    category: Optional[str] = Query(None, description="Only products in this category"),
    status: Optional[str] = Query(None, description="Available, Low Stock or Out of Stock")
):
    """List catalog products."""
    try:
        return await ProductManager().list_products(category=category, status=status)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(request: CreateProductRequest):
    """Create a product with the next PRD identifier."""
    try:
        return await ProductManager().create_product(**request.model_dump())
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.get("/{product_id}")
async def get_product(product_id: str):
    """Get a product by identifier."""
    try:
        return await ProductManager().get_product(product_id)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.put("/{product_id}")
async def update_product(product_id: str, request: UpdateProductRequest):
    """Update a product; status follows quantity."""
    try:
        return await ProductManager().update_product(
            product_id,
            request.model_dump(exclude_unset=True)
        )
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.delete("/{product_id}")
async def delete_product(product_id: str):
    """Delete a product."""
    try:
        await ProductManager().delete_product(product_id)
        return {"success": True, "product_id": product_id}
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

# Export the router
__all__ = ['router']
