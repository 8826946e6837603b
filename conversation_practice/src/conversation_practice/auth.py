"""
Authentication utilities for the conversation client
"""
import logging
import os
from typing import Optional

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

TOKEN_ENV = "CONVERSATION_AUTH_TOKEN"
SECRET_ENV = "AUTH_JWT_SECRET"
JWT_ALGORITHM = "HS256"


def get_auth_token() -> Optional[str]:
    """Bearer token for backend calls, or None when the user is not signed in."""
    token = os.getenv(TOKEN_ENV)
    return token.strip() if token and token.strip() else None


def verify_token(token: Optional[str], secret: Optional[str] = None) -> Optional[dict]:
    """
    Check a bearer token before starting a conversation

    Args:
        token: Bearer token (without the "Bearer " prefix)
        secret: HS256 signing secret; defaults to AUTH_JWT_SECRET

    Returns:
        dict: {"user_id": ...} when the token is acceptable, None otherwise
    """
    if not token:
        return None

    secret = secret or os.getenv(SECRET_ENV)
    if not secret:
        # No local secret: the backend validates the token on every call
        return {"user_id": None}

    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"verify_aud": False})
    except JWTError as e:
        logger.warning(f"⚠️ [Auth] Token rejected: {e}")
        return None

    user_id = claims.get("sub") or claims.get("userId")
    if not user_id:
        logger.warning("⚠️ [Auth] Token has no subject claim")
        return None
    return {"user_id": user_id}
