"""
In-app notification storage.

Handles creation and read state of the notification rows users see in
the web client.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Iterable, List

from backend.app.models.notification import Notification, NotificationType
from backend.app.models.user import User
from backend.app.models.enums import UserRole


class NotificationService:
    
    @staticmethod
    async def create_for_users(
        db: AsyncSession,
        user_ids: Iterable[int],
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        template: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        document_number: Optional[str] = None
    ) -> List[Notification]:
        """Create one notification per user id. Caller commits."""
        notifications = [
            Notification(
                user_id=uid,
                type=type,
                template=template,
                document_number=document_number,
                title=title,
                message=message,
                metadata_payload=metadata
            )
            for uid in dict.fromkeys(user_ids)
        ]
        if notifications:
            db.add_all(notifications)
            await db.flush()
        return notifications

    @staticmethod
    async def active_user_ids_for_roles(db: AsyncSession, roles: Iterable[UserRole]) -> List[int]:
        """Ids of active users holding any of the given roles."""
        roles = list(roles)
        if not roles:
            return []
        result = await db.execute(
            select(User.id).where(User.role.in_(roles), User.is_active == True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
        document_number: Optional[str] = None
    ) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        if document_number:
            query = query.where(Notification.document_number == document_number.upper())
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        """Mark all notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount
