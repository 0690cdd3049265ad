"""
JWT access tokens for staff and customer sessions.

Every token carries a unique ``jti`` so that revoking one session on
logout never affects another session of the same user issued in the
same second.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from backend.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode (sub, user_id, role)
        expires_delta: Lifetime override, defaults to the configured expiry

    Example payload:
        {
            "sub": "ops_desk",
            "user_id": 12,
            "role": "OPERATIONS",
            "iat": 1790000000,
            "exp": 1790001800,
            "jti": "4f0c..."
        }
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = data.copy()
    claims.update({
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": uuid.uuid4().hex,
    })
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid token, or None when the signature or expiry check fails."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
