"""
Audit logging service for authentication events and document changes.

Provides centralized logging for compliance and security monitoring.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    USER_CREATED = "USER_CREATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    USER_REACTIVATED = "USER_REACTIVATED"
    NOTIFICATION_REPLAYED = "NOTIFICATION_REPLAYED"
    
    # Bookings / Shipments (prefixed with the entity label at call sites)
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    CANCELLED = "CANCELLED"
    ASSIGNED = "ASSIGNED"
    CARGO_UPDATED = "CARGO_UPDATED"
    NOTE_ADDED = "NOTE_ADDED"
    CHARGE_ADDED = "CHARGE_ADDED"
    SOFT_DELETED = "SOFT_DELETED"
    RESTORED = "RESTORED"
    HARD_DELETED = "HARD_DELETED"
    TRASH_EMPTIED = "TRASH_EMPTIED"
    
    # Warehouse / billing
    CARGO_RECEIVED = "CARGO_RECEIVED"
    CONSOLIDATION_CREATED = "CONSOLIDATION_CREATED"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    
    @staticmethod
    def for_entity(entity_label: str, action: str) -> str:
        """AuditAction.for_entity("Booking", AuditAction.CREATED) -> "BOOKING_CREATED"."""
        return f"{entity_label.upper()}_{action}"


def record_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    entity=None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Add an audit row to the session without committing.
    
    Used inside a unit of work so the audit row commits (or rolls back)
    together with the change it describes.
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        entity_type=getattr(entity, "label", None),
        entity_id=getattr(entity, "id", None),
        entity_number=getattr(entity, "number", None),
        meta_data=metadata,
        ip_address=ip_address
    )
    db.add(audit_log)
    return audit_log


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    entity=None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log an event to the audit log and commit it immediately.
    
    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        entity: Booking/Shipment the action applied to (if applicable)
        metadata: Additional context as JSON
        ip_address: IP address of the request
        
    Returns:
        Created AuditLog instance
    """
    audit_log = record_event(
        db,
        action,
        actor_id=actor_id,
        actor_username=actor_username,
        entity=entity,
        metadata=metadata,
        ip_address=ip_address
    )
    await db.commit()
    await db.refresh(audit_log)
    
    return audit_log


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an authentication event (login success/failure, logout).
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    
    if entity_id:
        query = query.where(AuditLog.entity_id == entity_id)
    
    if action:
        query = query.where(AuditLog.action == action)
    
    query = query.limit(limit)
    
    result = await db.execute(query)
    return result.scalars().all()
