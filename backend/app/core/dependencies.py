"""
Bearer-token authentication for FastAPI routes.

get_current_user() turns the Authorization header into verified token
claims. A token is accepted only while all of these hold:

- signature and expiry are valid and it names a user and a session (jti)
- its session was not logged out and its user was not deactivated
- the user still exists, is active and holds the role the token was
  issued for

Role-based checks on top of this live in core.guards.
"""

from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from backend.app.db.session import get_db
from backend.app.models.user import User

security = HTTPBearer()


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Verified claims of the presented access token.

    Raises:
        HTTPException: 401 for a bad, revoked or outdated token;
            403 for an account that is no longer active
    """
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("Could not validate credentials")

    user_id = claims.get("user_id")
    if not user_id or not claims.get("jti"):
        raise _unauthorized("Invalid token payload")

    if await is_token_revoked(claims):
        raise _unauthorized("Token has been revoked")
    if await are_user_tokens_revoked(user_id):
        raise _unauthorized("User access has been revoked")

    # Redis may be down; the stored account is the final word
    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    if claims.get("role") != user.role.value:
        raise _unauthorized("Token role is out of date, please log in again")

    return claims


def client_ip(request: Request) -> Optional[str]:
    """Caller address for audit rows; the first X-Forwarded-For hop wins."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
