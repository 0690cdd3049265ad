"""
Notification transports.

A transport delivers one rendered message and returns a delivery id, or
raises on failure (the dispatcher owns retries).
"""

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import async_sessionmaker

from backend.app.services.notification_service import NotificationService
from backend.app.services.notifications.templates import RenderedMessage

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def deliver(self, request, message: RenderedMessage) -> str:
        ...


class InAppTransport:
    """Stores the message as in-app notifications for every recipient."""
    
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
    
    async def deliver(self, request, message: RenderedMessage) -> str:
        async with self.session_factory() as db:
            user_ids = list(request.user_ids)
            user_ids += await NotificationService.active_user_ids_for_roles(db, request.roles)
            notifications = await NotificationService.create_for_users(
                db,
                user_ids,
                title=message.subject,
                message=message.body,
                type=message.type,
                template=request.template,
                metadata=request.context,
                document_number=request.context.get("number"),
            )
            await db.commit()
        return f"in_app:{len(notifications)}"


class LoggingTransport:
    """Writes messages to the log only."""
    
    async def deliver(self, request, message: RenderedMessage) -> str:
        logger.info(
            "Notification %s to users=%s roles=%s: %s",
            request.template,
            list(request.user_ids),
            [r.value for r in request.roles],
            message.subject,
        )
        return f"log:{request.template}"
