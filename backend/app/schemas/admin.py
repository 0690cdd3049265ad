"""
Admin API Schema Definitions.

Pydantic schemas for admin endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.enums import UserRole
from backend.app.models.dlq import DLQStatus


class UserListItem(BaseModel):
    """Schema for user in list response."""
    id: int
    username: str
    email: str
    role: UserRole
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    is_active: bool
    is_superuser: bool
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Schema for list users response."""
    users: List[UserListItem]
    total: int
    page: int
    page_size: int


class DeactivateUserRequest(BaseModel):
    """Schema for deactivating a user."""
    reason: Optional[str] = Field(None, description="Reason for deactivation (for audit log)")


class AdminActionResponse(BaseModel):
    """Schema for admin action response."""
    success: bool
    message: str
    user_id: int
    action: str
    audit_log_id: int


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    entity_number: Optional[str]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime
    
    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int


class DeadLetterResponse(BaseModel):
    id: int
    task_name: str
    template: Optional[str]
    recipient: Optional[str]
    error_message: str
    payload: Optional[Dict[str, Any]]
    status: DLQStatus
    requeue_count: int
    created_at: datetime
    last_retry_at: Optional[datetime]
    
    class Config:
        from_attributes = True
