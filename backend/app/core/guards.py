"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints and the Actor value
that services use for their own authorization checks.
"""

from dataclasses import dataclass
from typing import List, Optional
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as seen by the service layer."""
    user_id: int
    role: UserRole
    username: Optional[str] = None
    
    @classmethod
    def from_payload(cls, payload: dict) -> "Actor":
        return cls(
            user_id=payload["user_id"],
            role=UserRole(payload["role"]),
            username=payload.get("sub"),
        )
    
    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.OPERATIONS, UserRole.WAREHOUSE})


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.get("/bookings/trash")
        async def list_trash(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...
    
    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint
        
    Returns:
        FastAPI dependency function that validates user role
        
    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")
        
        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )
        
        # Convert string role to UserRole enum
        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )
        
        # Check if user role is in allowed roles
        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        
        return current_user
    
    return role_checker


async def get_current_actor(current_user: dict = Depends(get_current_user)) -> Actor:
    """Dependency returning the caller as an Actor."""
    try:
        return Actor.from_payload(current_user)
    except (KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid role in token"
        )


def require_actor(allowed_roles: List[UserRole]):
    """Same as require_role, but yields an Actor."""
    async def actor_checker(current_user: dict = Depends(require_role(allowed_roles))) -> Actor:
        return Actor.from_payload(current_user)
    
    return actor_checker


def verify_ownership(resource_owner_id: int, actor: Actor) -> bool:
    """
    Verify that the actor may access a customer-owned resource.
    
    Staff roles see everything; customers only their own resources.
    """
    if actor.is_staff:
        return True
    return actor.user_id == resource_owner_id


class OwnershipGuard:
    """
    Class-based ownership guard for customer-owned resources.
    
    Usage:
        ownership_guard = OwnershipGuard()
        ownership_guard.enforce(booking.customer_id, actor, "booking")
    """
    
    def enforce(
        self,
        resource_owner_id: int,
        actor: Actor,
        resource_name: str = "resource"
    ):
        """
        Enforce ownership validation.
        
        Raises:
            InsufficientPermissionsError if ownership check fails
        """
        if not verify_ownership(resource_owner_id, actor):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )
    
    def filter_by_ownership(self, actor: Actor) -> Optional[int]:
        """
        Get the customer id to filter list queries by.
        
        Staff: None (no filtering). Customers: their own user id.
        """
        if actor.is_staff:
            return None
        return actor.user_id
