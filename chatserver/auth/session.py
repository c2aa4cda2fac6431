"""
Session Token Module
====================

Mints and verifies the short-lived bearer tokens clients present to the
HTTP API and to the realtime gateway. Tokens are HS-family JWTs carrying the
user id in both ``user_id`` and ``sub``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from bson import ObjectId
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from ..config import Settings
from ..errors import BadInput, Unauthorized
from ..ids import format_object_id, parse_object_id

logger = logging.getLogger("chatserver.auth.session")


# =============================================================================
# Token Creation
# =============================================================================

def mint_token(user_id: ObjectId, settings: Settings) -> str:
    """
    Create a session token for a user.

    Args:
        user_id: Id of the authenticated user
        settings: Supplies secret, algorithm and lifetime

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    subject = format_object_id(user_id)
    payload = {
        "user_id": subject,
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }

    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    logger.debug(
        "Minted session token",
        extra={"user_id": subject, "expires_in_hours": settings.JWT_EXPIRY_HOURS},
    )
    return token


# =============================================================================
# Token Verification
# =============================================================================

def verify_token(token: Optional[str], settings: Settings) -> ObjectId:
    """
    Verify a session token and return the user id it was minted for.

    Raises:
        Unauthorized: If the token is missing, expired, malformed, or does
            not carry a valid user id
    """
    if not token:
        raise Unauthorized("Authorization token is missing")

    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "user_id"]},
        )
    except ExpiredSignatureError:
        logger.warning("Session token expired")
        raise Unauthorized("Token has expired")
    except InvalidTokenError as e:
        logger.warning(f"Invalid session token: {e}")
        raise Unauthorized("Invalid token")

    try:
        return parse_object_id(claims.get("user_id"), "user_id")
    except BadInput:
        raise Unauthorized("invalid token format: user_id is missing or invalid")


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        Unauthorized: If the header is missing or malformed
    """
    if not authorization:
        raise Unauthorized("Authorization header is missing or invalid")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("Authorization header is missing or invalid")

    return parts[1]
