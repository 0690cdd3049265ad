"""
Admin Operations API Endpoints.

Endpoints for the notification dead letter queue and the statistics cache.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timezone

from backend.app.db.session import get_db
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.models.enums import UserRole
from backend.app.core.guards import require_role
from backend.app.schemas.admin import DeadLetterResponse
from backend.app.services.cache import TTLCache
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.notifications.dispatcher import NotificationRequest
from backend.app.services.notifications.queue import NotificationQueue
from backend.app.api.v1.deps import get_cache, get_notification_queue

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.get("/dlq", response_model=List[DeadLetterResponse])
async def list_dlq_items(
    dlq_status: Optional[DLQStatus] = Query(DLQStatus.FAILED, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List dropped notifications, newest first."""
    query = select(DeadLetterQueue)
    if dlq_status is not None:
        query = query.where(DeadLetterQueue.status == dlq_status)
    result = await db.execute(query.order_by(DeadLetterQueue.id.desc()).limit(limit))
    return result.scalars().all()


@router.post("/dlq/{dlq_id}/replay")
async def replay_dlq_item(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
    db: AsyncSession = Depends(get_db)
):
    """Put a dropped notification back on the queue."""
    result = await db.execute(select(DeadLetterQueue).where(DeadLetterQueue.id == dlq_id))
    item = result.scalar_one_or_none()

    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="DLQ item not found")
    if item.status != DLQStatus.FAILED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"DLQ item is already {item.status.value}")
    if queue is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Notification queue is not running")

    payload = item.payload or {}
    queue.enqueue(NotificationRequest(
        template=item.template,
        context=payload.get("context", {}),
        user_ids=tuple(payload.get("user_ids", [])),
        roles=tuple(UserRole(r) for r in payload.get("roles", [])),
    ))

    item.status = DLQStatus.REPLAYED
    item.last_retry_at = datetime.now(timezone.utc)
    await db.commit()

    await log_event(
        db,
        AuditAction.NOTIFICATION_REPLAYED,
        actor_id=current_user["user_id"],
        actor_username=current_user["sub"],
        metadata={"dlq_id": dlq_id, "template": item.template}
    )
    return {"message": f"Notification {item.template} requeued", "dlq_id": dlq_id}


@router.post("/clear-cache")
async def clear_system_cache(
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    cache: Optional[TTLCache] = Depends(get_cache)
):
    """Clear the statistics cache."""
    if cache is not None:
        cache.clear()
    return {"message": "Cache cleared successfully"}
