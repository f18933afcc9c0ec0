"""Authentication API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Request, status, Security
from pydantic import BaseModel

from auth import (
    manager, get_current_user, AuthError, ChallengeNotFoundError,
    ChallengeExpiredError, ChallengeUsedError, InvalidSignatureError
)
from api.errors import error_response

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class ChallengeRequest(BaseModel):
    """Request model for creating a challenge."""
    address: str

class ChallengeResponse(BaseModel):
    """Response model for challenge creation."""
    challenge_id: str
    message: str
    expires_at: str

class VerifyRequest(BaseModel):
    """Request model for verifying a challenge."""
    challenge_id: str
    address: str
    signature: str

class LoginResponse(BaseModel):
    """Response model for login."""
    token: str
    expires_at: str

@router.post("/challenge", response_model=ChallengeResponse)
async def create_challenge(request: ChallengeRequest):
    """Create a new authentication challenge."""
    try:
        return await manager.create_challenge(request.address)
    except AuthError as e:
        raise error_response('validation', str(e))
    except Exception as e:
        logger.exception(f"Error creating challenge: {e}")
        raise error_response('internal', str(e))

@router.post("/login", response_model=LoginResponse)
async def login(request: VerifyRequest, fastapi_request: Request):
    """Verify a challenge signature and create session."""
    try:
        return await manager.verify_challenge(
            request.challenge_id,
            request.address,
            request.signature,
            fastapi_request
        )
    except ChallengeNotFoundError as e:
        raise error_response('not_found', str(e))
    except ChallengeExpiredError:
        raise error_response('validation', "Challenge has expired")
    except ChallengeUsedError:
        raise error_response('validation', "Challenge has already been used")
    except InvalidSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": str(e)}
        )
    except AuthError as e:
        raise error_response('validation', str(e))
    except Exception as e:
        logger.exception(f"Error verifying challenge: {e}")
        raise error_response('internal', str(e))

@router.post("/logout")
async def logout(address: str = Security(get_current_user)):
    """Log out the current user by revoking their session."""
    try:
        await manager.logout(address)
        return {"success": True}
    except AuthError as e:
        raise error_response('validation', str(e))
    except Exception as e:
        logger.exception(f"Error logging out: {e}")
        raise error_response('internal', str(e))

@router.get("/verify")
async def verify_token(address: str = Security(get_current_user)):
    """Verify the current session token."""
    return {
        "valid": True,
        "address": address
    }

# Export the router
__all__ = ['router']
