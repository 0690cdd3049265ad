"""
Session revocation backed by Redis.

A session is one issued access token, identified by its ``jti`` claim.
Logout revokes that session only; deactivating an account sets a flag
that rejects every session of the user until it is cleared again on
reactivation. Entries expire with the tokens they block, so the store
never grows past the sessions that are still live.

Lookups fail open: with Redis unreachable a token is treated as not
revoked, and the database check in get_current_user still refuses
inactive accounts.
"""

import logging
import time
from typing import Any, Dict, Optional

from backend.app.core import redis_client as redis_client_module
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

SESSION_KEY = "revoked:session:{jti}"
USER_KEY = "revoked:user:{user_id}"


def _session_ttl(claims: Dict[str, Any]) -> int:
    """Seconds until the token expires on its own (at least one)."""
    expires_at = claims.get("exp")
    if expires_at is None:
        return settings.access_token_expire_minutes * 60
    return max(int(expires_at - time.time()), 1)


async def _exists(key: str) -> Optional[bool]:
    try:
        return await redis_client_module.redis_client.exists(key) > 0
    except Exception as e:
        logger.error("Revocation lookup for %s failed: %s", key, e)
        return None


async def revoke_token(claims: Dict[str, Any]) -> bool:
    """
    Revoke the session the given (already decoded) token belongs to.

    Returns:
        False when the token has no jti or Redis rejected the write
    """
    jti = claims.get("jti")
    if not jti:
        return False
    try:
        await redis_client_module.redis_client.setex(
            SESSION_KEY.format(jti=jti), _session_ttl(claims), str(claims.get("user_id"))
        )
    except Exception as e:
        logger.error("Could not revoke session %s of user %s: %s", jti, claims.get("user_id"), e)
        return False
    logger.info("Session %s of user %s revoked", jti, claims.get("user_id"))
    return True


async def is_token_revoked(claims: Dict[str, Any]) -> bool:
    return bool(await _exists(SESSION_KEY.format(jti=claims.get("jti"))))


async def revoke_all_user_tokens(user_id: int) -> bool:
    """Block every session of a user; lasts as long as a fresh token would."""
    try:
        await redis_client_module.redis_client.setex(
            USER_KEY.format(user_id=user_id), settings.access_token_expire_minutes * 60, "1"
        )
    except Exception as e:
        logger.error("Could not revoke sessions of user %s: %s", user_id, e)
        return False
    logger.info("All sessions of user %s revoked", user_id)
    return True


async def are_user_tokens_revoked(user_id: int) -> bool:
    return bool(await _exists(USER_KEY.format(user_id=user_id)))


async def clear_user_token_revocation(user_id: int) -> bool:
    """Lift the account-wide block (reactivation)."""
    try:
        await redis_client_module.redis_client.delete(USER_KEY.format(user_id=user_id))
    except Exception as e:
        logger.error("Could not clear session block of user %s: %s", user_id, e)
        return False
    return True
