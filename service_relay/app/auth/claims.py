"""
Read-only access to claims carried by the session token.

The relay never validates credentials; the core service does. Claims are
only read to find out which customer a request belongs to.
"""

from typing import Any, Dict, Optional

import jwt

from shared.logging import get_logger

logger = get_logger("relay.claims")


def read_claims(token: str) -> Optional[Dict[str, Any]]:
    """Decode a JWT payload without verifying its signature."""
    try:
        claims = jwt.decode(
            token,
            options={
                "verify_signature": False,
                "verify_exp": False,
                "verify_nbf": False,
                "verify_iat": False,
                "verify_aud": False,
                "verify_iss": False,
                "verify_sub": False,
                "verify_jti": False,
            },
            algorithms=["HS256", "RS256"],
        )
    except jwt.PyJWTError as exc:
        logger.warning("Token payload unreadable", error=type(exc).__name__)
        return None
    return claims if isinstance(claims, dict) else None


def external_id_of(token: str) -> Optional[str]:
    """The identity-provider user id: ``externalId`` first, then ``sub``."""
    claims = read_claims(token) or {}
    for key in ("externalId", "sub"):
        value = claims.get(key)
        if value not in (None, ""):
            return str(value)
    return None
