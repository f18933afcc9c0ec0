"""Authentication module using wallet signature challenges.

This module provides:
1. Challenge creation and verification through the chain bridge's verifyMessage
2. Single active session per wallet address
3. A FastAPI dependency for protecting routes
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt
from chain import bridge, ChainBridgeError
from config import settings_conf
from database import get_pool
from parties import normalize_address, InvalidPartyError

# Configure logging
logger = logging.getLogger(__name__)

# Constants
CHALLENGE_EXPIRY_MINUTES = 5
SESSION_EXPIRY_DAYS = 30
JWT_SECRET = settings_conf['jwt_secret'] or secrets.token_urlsafe(32)  # Random per process unless configured
JWT_ALGORITHM = "HS256"

class AuthError(Exception):
    """Base exception for authentication errors."""
    kind = 'validation'

class ChallengeNotFoundError(AuthError):
    """Raised when no challenge matches the id and address."""
    kind = 'not_found'

class ChallengeExpiredError(AuthError):
    """Raised when a challenge has expired."""
    pass

class ChallengeUsedError(AuthError):
    """Raised when a challenge has already been used."""
    pass

class InvalidSignatureError(AuthError):
    """Raised when message signature verification fails."""
    pass

class SessionExpiredError(AuthError):
    """Raised when a session has expired."""
    pass

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _normalize(address: str) -> str:
    try:
        return normalize_address(address)
    except InvalidPartyError as e:
        raise AuthError(str(e)) from e

class AuthManager:
    """Manages authentication challenges and sessions."""

    def __init__(self, pool=None, chain_bridge=None):
        """Initialize auth manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            chain_bridge: Optional bridge used to verify signatures. Defaults to the global bridge.
        """
        self.pool = pool
        self.bridge = chain_bridge or bridge

    async def ensure_pool(self):
        """Ensure database pool is available."""
        if not self.pool:
            self.pool = await get_pool()

    async def create_challenge(self, address: str) -> Dict[str, Any]:
        """Create a new authentication challenge.

        Args:
            address: The wallet address to authenticate

        Returns:
            Dict containing:
                - challenge_id: UUID of challenge
                - message: Message to sign
                - expires_at: Challenge expiration timestamp
        """
        address = _normalize(address)
        await self.ensure_pool()

        challenge = f"Sign this message to authenticate with MedX: {secrets.token_hex(16)}"
        expires_at = _utcnow() + timedelta(minutes=CHALLENGE_EXPIRY_MINUTES)

        async with self.pool.acquire() as conn:
            challenge_id = await conn.fetchval(
                '''
                INSERT INTO auth_challenges (
                    address, challenge, expires_at
                ) VALUES ($1, $2, $3)
                RETURNING id
                ''',
                address,
                challenge,
                expires_at
            )

        return {
            'challenge_id': str(challenge_id),
            'message': challenge,
            'expires_at': expires_at.isoformat()
        }

    async def verify_challenge(
        self,
        challenge_id: str,
        address: str,
        signature: str,
        request: Optional[Request] = None
    ) -> Dict[str, Any]:
        """Verify a challenge signature and create session.

        Args:
            challenge_id: UUID of the challenge
            address: The wallet address that signed
            signature: The signature to verify
            request: Optional request object for session metadata

        Returns:
            Dict containing:
                - token: Session token for future requests
                - expires_at: Session expiration timestamp

        Raises:
            ChallengeNotFoundError: If no such challenge was issued to the address
            ChallengeExpiredError: If challenge has expired
            ChallengeUsedError: If challenge was already used
            InvalidSignatureError: If signature verification fails
        """
        address = _normalize(address)
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            challenge = await conn.fetchrow(
                '''
                SELECT
                    challenge,
                    expires_at,
                    used
                FROM auth_challenges
                WHERE id = $1::UUID AND address = $2
                ''',
                challenge_id,
                address
            )

            if not challenge:
                raise ChallengeNotFoundError("Challenge not found")

            if challenge['expires_at'] < _utcnow():
                raise ChallengeExpiredError("Challenge has expired")

            if challenge['used']:
                raise ChallengeUsedError("Challenge has already been used")

            try:
                valid = self.bridge.verify_message(address, signature, challenge['challenge'])
            except ChainBridgeError as e:
                raise InvalidSignatureError(f"Signature check failed: {str(e)}")
            if not valid:
                raise InvalidSignatureError("Invalid signature")

            expires_at = _utcnow() + timedelta(days=SESSION_EXPIRY_DAYS)
            token = jwt.encode(
                {
                    'sub': address,
                    'exp': int(expires_at.timestamp())
                },
                JWT_SECRET,
                algorithm=JWT_ALGORITHM
            )

            async with conn.transaction():
                await conn.execute(
                    'UPDATE auth_challenges SET used = true WHERE id = $1::UUID',
                    challenge_id
                )

                # Single active session per address
                await conn.execute(
                    '''
                    UPDATE auth_sessions
                    SET revoked = true, revoked_at = now()
                    WHERE address = $1 AND NOT revoked
                    ''',
                    address
                )

                await conn.execute(
                    '''
                    INSERT INTO auth_sessions (
                        address, token, expires_at,
                        user_agent, ip_address
                    ) VALUES ($1, $2, $3, $4, $5)
                    ''',
                    address,
                    token,
                    expires_at,
                    request.headers.get('user-agent') if request else None,
                    request.client.host if request and request.client else None
                )

        logger.info(f"Session created for {address}")
        return {
            'token': token,
            'expires_at': expires_at.isoformat()
        }

    async def verify_session(
        self,
        token: str,
        request: Optional[Request] = None,
        required_address: Optional[str] = None
    ) -> str:
        """Verify a session token.

        Args:
            token: The session token to verify
            request: Optional request object for updating session metadata
            required_address: Optional address that must match the token's address

        Returns:
            The authenticated address

        Raises:
            SessionExpiredError: If session has expired
            AuthError: For other verification errors
        """
        try:
            payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise SessionExpiredError("Session has expired")
        except jwt.JWTError as e:
            raise AuthError(f"Invalid token: {str(e)}")

        address = payload.get('sub')
        if not address:
            raise AuthError("Invalid token: missing subject")
        if required_address and address != _normalize(required_address):
            raise AuthError("Token does not match required address")

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            session = await conn.fetchrow(
                '''
                SELECT
                    expires_at,
                    revoked
                FROM auth_sessions
                WHERE address = $1 AND token = $2
                AND NOT revoked
                ''',
                address,
                token
            )

            if not session:
                raise AuthError("Session not found or revoked")

            if session['expires_at'] < _utcnow():
                raise SessionExpiredError("Session has expired")

            if request:
                await conn.execute(
                    '''
                    UPDATE auth_sessions
                    SET
                        last_used_at = now(),
                        user_agent = $3,
                        ip_address = $4
                    WHERE address = $1 AND token = $2
                    ''',
                    address,
                    token,
                    request.headers.get('user-agent'),
                    request.client.host if request.client else None
                )

        return address

    async def logout(self, address: str):
        """Log out by revoking the active session.

        Args:
            address: Address to log out
        """
        address = _normalize(address)
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                UPDATE auth_sessions
                SET
                    revoked = true,
                    revoked_at = now()
                WHERE address = $1
                AND NOT revoked
                ''',
                address
            )
        logger.info(f"Logged out {address}")

# Create global instance
manager = AuthManager()

# FastAPI security scheme
auth_scheme = HTTPBearer(
    auto_error=True,  # Return 401 automatically if token is missing
    description="JWT Bearer token required"
)

async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)
) -> str:
    """FastAPI dependency for getting authenticated user.

    Args:
        request: The FastAPI request
        credentials: Bearer token credentials

    Returns:
        The authenticated address

    Raises:
        HTTPException: If authentication fails
    """
    try:
        return await manager.verify_session(credentials.credentials, request)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired"
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

# Export public interface
__all__ = [
    'manager',
    'AuthManager',
    'get_current_user',
    'AuthError',
    'ChallengeNotFoundError',
    'ChallengeExpiredError',
    'ChallengeUsedError',
    'InvalidSignatureError',
    'SessionExpiredError'
]
