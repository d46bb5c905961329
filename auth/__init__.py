"""Bearer token authentication.

This module provides:
1. JWT creation and verification (python-jose)
2. Resolution of a token subject to a known user
3. A FastAPI dependency for protecting routes
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError

from config import settings_conf

# Configure logging
logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base exception for authentication errors."""
    pass


class TokenExpiredError(AuthError):
    """Raised when a token has expired."""
    pass


def create_token(
    user_id: str,
    settings: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed bearer token whose subject is user_id.

    Args:
        user_id: The user the token authenticates
        settings: Settings holding jwt_secret, jwt_algorithm and
            token_expiry_days; defaults to the loaded settings.conf
        expires_delta: Override of the token lifetime

    Returns:
        The encoded JWT
    """
    settings = settings or settings_conf
    if expires_delta is None:
        expires_delta = timedelta(days=settings['token_expiry_days'])
    expires_at = datetime.now(timezone.utc) + expires_delta

    return jwt.encode(
        {
            'sub': str(user_id),
            'exp': int(expires_at.timestamp())
        },
        settings['jwt_secret'],
        algorithm=settings['jwt_algorithm']
    )


def decode_token(token: str, settings: Optional[Dict[str, Any]] = None) -> str:
    """Verify a token and return its subject.

    Raises:
        TokenExpiredError: If the token has expired
        AuthError: If the token is malformed, badly signed or has no subject
    """
    settings = settings or settings_conf
    try:
        payload = jwt.decode(
            token,
            settings['jwt_secret'],
            algorithms=[settings['jwt_algorithm']]
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except JWTError as e:
        raise AuthError(f"Invalid token: {str(e)}")

    subject = payload.get('sub')
    if not subject:
        raise AuthError("Token has no subject")
    return subject


async def authenticate(token: Optional[str], users, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Resolve a bearer token to the user it was issued for.

    Args:
        token: Encoded JWT
        users: UserStore or MemoryUserStore
        settings: Settings used to verify the token

    Returns:
        The user dict

    Raises:
        AuthError: If the token is missing or invalid, or its user is unknown
    """
    if not isinstance(token, str) or not token:
        raise AuthError("Authentication required")
    user_id = decode_token(token, settings)
    user = await users.get_user(user_id)
    if not user:
        raise AuthError("Unknown user")
    return user


# FastAPI security scheme; missing credentials are turned into a 401 below
auth_scheme = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token required"
)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)
) -> Dict[str, Any]:
    """FastAPI dependency for getting the authenticated user.

    Raises:
        HTTPException: 401 if authentication fails
    """
    services = request.app.state.services
    try:
        return await authenticate(
            credentials.credentials if credentials else None,
            services.users,
            services.settings
        )
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"}
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )


# Export public interface
__all__ = [
    'create_token',
    'decode_token',
    'authenticate',
    'get_current_user',
    'auth_scheme',
    'AuthError',
    'TokenExpiredError'
]
