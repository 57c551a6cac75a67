"""
JWT Session Tokens
Signs and verifies the access/refresh credentials carried in auth cookies
"""

import jwt
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from .config import settings
from .logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

SESSION_CLAIMS = ("userId", "email", "role", "tenantId", "isGlobalUser")


def create_jwt_token(
    payload: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT token with the given payload

    Args:
        payload: Data to encode in the token
        expires_delta: Token expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = payload.copy()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_minutes)

    now = datetime.utcnow()
    to_encode.update({"exp": now + expires_delta, "iat": now})

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm
    )


def decode_jwt_token(token: str, token_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT token

    Args:
        token: JWT token string
        token_type: Required value of the "type" claim, if any

    Returns:
        Decoded payload or None if invalid, expired or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        logger.debug("JWT token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None

    if token_type and payload.get("type") != token_type:
        logger.warning("JWT token type mismatch", expected=token_type, actual=payload.get("type"))
        return None

    for claim in ("userId", "role"):
        if claim not in payload:
            logger.warning(f"JWT token missing claim: {claim}")
            return None

    return payload


def _session_claims(claims: Dict[str, Any]) -> Dict[str, Any]:
    return {key: claims.get(key) for key in SESSION_CLAIMS}


def create_access_token(claims: Dict[str, Any]) -> str:
    """Short-lived token for the access cookie"""
    payload = _session_claims(claims)
    payload["type"] = ACCESS_TOKEN
    return create_jwt_token(payload, timedelta(minutes=settings.access_token_minutes))


def create_refresh_token(claims: Dict[str, Any]) -> str:
    """Long-lived token for the refresh cookie"""
    payload = _session_claims(claims)
    payload["type"] = REFRESH_TOKEN
    return create_jwt_token(payload, timedelta(days=settings.refresh_token_days))


def refresh_access_token(refresh_token: str) -> Optional[str]:
    """Exchange a valid refresh token for a new access token"""
    payload = decode_jwt_token(refresh_token, token_type=REFRESH_TOKEN)
    if not payload:
        return None
    return create_access_token(payload)
