"""
Admin API Endpoints.

Provides admin-only user management endpoints with audit logging.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.schemas.admin import (
    UserListResponse, UserListItem, DeactivateUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse
)
from backend.app.schemas.auth import StaffCreate
from backend.app.core.guards import require_role
from backend.app.core.security import get_password_hash
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.services.audit import log_event, AuditAction, get_audit_trail
from backend.app.api.v1.endpoints.auth import ensure_unique_credentials

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_role([UserRole.ADMIN])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List users (admin-only), optionally by role.

    Returns paginated user list with role and status information.
    """
    count_query = select(func.count(User.id))
    query = select(User)
    if role is not None:
        count_query = count_query.where(User.role == role)
        query = query.where(User.role == role)

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(page_size))
    users = result.scalars().all()

    return UserListResponse(
        users=[UserListItem.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/users", response_model=UserListItem, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: StaffCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a staff or customer account with an explicit role (admin-only)."""
    await ensure_unique_credentials(db, user_data.username, user_data.email)

    new_user = User(
        email=user_data.email,
        username=user_data.username,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        company_name=user_data.company_name,
        phone=user_data.phone,
        role=user_data.role,
        is_active=True,
        is_superuser=user_data.role == UserRole.ADMIN
    )
    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    await log_event(
        db=db,
        action=AuditAction.USER_CREATED,
        actor_id=admin["user_id"],
        actor_username=admin["sub"],
        metadata={"user_id": new_user.id, "username": new_user.username, "role": new_user.role.value}
    )
    return UserListItem.model_validate(new_user)


@router.get("/users/{user_id}", response_model=UserListItem)
async def get_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get detailed information about a specific user (admin-only).
    """
    return UserListItem.model_validate(await _get_user_or_404(db, user_id))


@router.post("/users/{user_id}/deactivate", response_model=AdminActionResponse)
async def deactivate_user(
    user_id: int,
    request: DeactivateUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Deactivate a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions.
    """
    target_user = await _get_user_or_404(db, user_id)

    if target_user.id == admin["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate yourself"
        )

    if target_user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot deactivate another admin user"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already inactive"
        )

    target_user.is_active = False
    await db.commit()

    await revoke_all_user_tokens(user_id)

    audit_log = await log_event(
        db=db,
        action=AuditAction.USER_DEACTIVATED,
        actor_id=admin["user_id"],
        actor_username=admin["sub"],
        metadata={"user_id": target_user.id, "username": target_user.username, "reason": request.reason}
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been deactivated",
        user_id=user_id,
        action=AuditAction.USER_DEACTIVATED,
        audit_log_id=audit_log.id
    )


@router.post("/users/{user_id}/reactivate", response_model=AdminActionResponse)
async def reactivate_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Reactivate a user and clear token revocations (admin-only).

    User will be able to login again and generate new tokens.
    """
    target_user = await _get_user_or_404(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    await clear_user_token_revocation(user_id)

    audit_log = await log_event(
        db=db,
        action=AuditAction.USER_REACTIVATED,
        actor_id=admin["user_id"],
        actor_username=admin["sub"],
        metadata={"user_id": target_user.id, "username": target_user.username}
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been reactivated",
        user_id=user_id,
        action=AuditAction.USER_REACTIVATED,
        audit_log_id=audit_log.id
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    entity_type: Optional[str] = Query(None, description="Booking or Shipment"),
    entity_id: Optional[int] = Query(None, description="Filter by entity ID"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).

    Returns recent audit logs for security monitoring and compliance.
    """
    logs = await get_audit_trail(
        db=db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
