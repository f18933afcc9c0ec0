"""Orders API endpoints."""

import logging
from fastapi import APIRouter, Query, status
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from orders import OrderManager
from api.errors import http_error, error_response, DOMAIN_ERRORS

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)

class OrderItem(BaseModel):
    """Request model for a cart line."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int

class CreateOrderRequest(BaseModel):
    """Request model for placing a catalog order."""
    model_config = ConfigDict(populate_by_name=True)

    buyer_address: str = Field(alias="buyerAddress")
    seller_address: str = Field(alias="sellerAddress")
    items: List[OrderItem]
    shipping_address: Optional[str] = Field(None, alias="shippingAddress")
    metadata_uri: Optional[str] = Field(None, alias="metadataUri")

class TransferOrderRequest(BaseModel):
    """Request model for a wallet-to-wallet inventory transfer."""
    model_config = ConfigDict(populate_by_name=True)

    buyer_address: str = Field(alias="buyerAddress")
    seller_address: str = Field(alias="sellerAddress")
    item_name: str = Field(alias="itemName")
    quantity: int
    metadata_uri: Optional[str] = Field(None, alias="metadataUri")

class UpdateOrderRequest(BaseModel):
    """Request model for updating an order.

    Buyer, seller, items and total cannot be changed and are ignored.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status: Optional[str] = None
    tracking_update: Optional[str] = Field(None, alias="trackingUpdate")
    shipping_address: Optional[str] = Field(None, alias="shippingAddress")
    metadata_uri: Optional[str] = Field(None, alias="metadataUri")

class ChainLinkRequest(BaseModel):
    """Request model for recording an order's on-chain linkage."""
    model_config = ConfigDict(populate_by_name=True)

    transaction_hash: Optional[str] = Field(None, alias="transactionHash")
    blockchain_order_id: Optional[str] = Field(None, alias="blockchainOrderId")

@router.get("")
async def search_orders(
    buyer: Optional[str] = Query(None, description="Buyer wallet address"),
    seller: Optional[str] = Query(None, description="Seller wallet address"),
    status: Optional[str] = Query(None, description="Order status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100)
):
    """Search orders, newest first."""
    try:
        return await OrderManager().search_orders(
            buyer_address=buyer,
            seller_address=seller,
            status=status,
            limit=per_page,
            offset=(page - 1) * per_page
        )
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.post("", status_code=status.HTTP_201_CREATED, tags=["Order Creation"])
async def create_order(order_request: CreateOrderRequest):
    """Place a catalog order; stock is reserved atomically with the order."""
    try:
        return await OrderManager().create_order(
            buyer_address=order_request.buyer_address,
            seller_address=order_request.seller_address,
            items=[item.model_dump() for item in order_request.items],
            shipping_address=order_request.shipping_address,
            metadata_uri=order_request.metadata_uri
        )
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.post("/transfer", status_code=status.HTTP_201_CREATED, tags=["Order Creation"])
async def create_transfer_order(transfer_request: TransferOrderRequest):
    """Transfer inventory between parties as a chain-anchored order."""
    try:
        return await OrderManager().create_transfer_order(
            buyer_address=transfer_request.buyer_address,
            seller_address=transfer_request.seller_address,
            item_name=transfer_request.item_name,
            quantity=transfer_request.quantity,
            metadata_uri=transfer_request.metadata_uri
        )
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.get("/{order_id}")
async def get_order(order_id: str):
    """Get order details by ID."""
    try:
        return await OrderManager().get_order(order_id)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.put("/{order_id}")
async def update_order(order_id: str, update_request: UpdateOrderRequest):
    """Update an order's status, tracking, shipping address or metadata."""
    try:
        return await OrderManager().update_order(
            order_id,
            update_request.model_dump(exclude_unset=True)
        )
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.patch("/{order_id}")
async def link_order_to_chain(order_id: str, link_request: ChainLinkRequest):
    """Record the transaction hash and/or on-chain order id of an order."""
    try:
        return await OrderManager().link_chain(
            order_id,
            transaction_hash=link_request.transaction_hash,
            blockchain_order_id=link_request.blockchain_order_id
        )
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

# Export the router
__all__ = ['router']
