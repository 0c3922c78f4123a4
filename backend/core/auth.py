"""
Bearer token authentication.

Credentials are issued by an external identity provider. This service only
verifies the JWT signature and reads the user identifier from the ``sub``
claim; it never handles passwords or sessions.
"""

from typing import Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import get_settings
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class User(BaseModel):
    """Authenticated caller as asserted by the identity provider."""

    id: str


def decode_token(token: str) -> Optional[User]:
    """
    Verify and decode a bearer token.

    Returns:
        User if the token is valid, None otherwise
    """
    settings = get_settings()
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None

    sub = payload.get("sub")
    if sub is None or str(sub).strip() == "":
        logger.warning("Token without subject claim rejected")
        return None

    return User(id=str(sub))


def create_access_token(user_id: str, **claims) -> str:
    """Issue a token the way the identity provider does. Used by tooling and tests."""
    settings = get_settings()
    to_encode = {"sub": str(user_id), **claims}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Resolve the authenticated user or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    user = decode_token(credentials.credentials)
    if user is None:
        raise AuthenticationError("Invalid or expired token")

    return user
