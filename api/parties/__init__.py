"""Party (user) directory API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Query, status, Security
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from parties import PartyManager, normalize_address
from auth import get_current_user
from api.errors import http_error, error_response, DOMAIN_ERRORS

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

class RegisterPartyRequest(BaseModel):
    """Request model for registering a party."""
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(alias="walletAddress")
    role: str
    name: str
    company_name: str = Field(alias="companyName")
    email: str
    phone: str = ""
    location: str = ""
    registration_id: str = Field("", alias="registrationId")
    license_number: str = Field("", alias="licenseNumber")

class UpdatePartyRequest(BaseModel):
    """Request model for updating a party profile.

    Unknown fields (wallet address, role, verification) are ignored.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    company_name: Optional[str] = Field(None, alias="companyName")
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    registration_id: Optional[str] = Field(None, alias="registrationId")
    license_number: Optional[str] = Field(None, alias="licenseNumber")

@router.get("")
async def list_parties(role: Optional[str] = Query(None, description="Only parties with this role")):
    """List registered parties."""
    try:
        return await PartyManager().list_parties(role)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.post("", status_code=status.HTTP_201_CREATED)
async def register_party(request: RegisterPartyRequest):
    """Register a new party. Addresses are unique regardless of letter case."""
    try:
        return await PartyManager().register_party(**request.model_dump())
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.get("/{address}")
async def get_party(address: str):
    """Get a party by wallet address."""
    try:
        return await PartyManager().get_party(address)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

@router.put("/{address}")
async def update_party(
    address: str,
    request: UpdatePartyRequest,
    current_address: str = Security(get_current_user)
):
    """Update the caller's own profile."""
    try:
        if normalize_address(address) != normalize_address(current_address):
            raise error_response('forbidden', "Cannot update another party's profile")
        return await PartyManager().update_party(
            address,
            request.model_dump(exclude_none=True)
        )
    except HTTPException:
        raise
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        raise error_response('internal', str(e))

# Export the router
__all__ = ['router']
