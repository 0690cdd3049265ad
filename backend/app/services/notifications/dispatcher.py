"""
Notification dispatcher.

send() renders a template and hands it to the transport, retrying with
exponential backoff. Delivery failures are reported in the returned
DeliveryResult, never raised; an unknown template is a caller bug and is
raised immediately.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.reliability import RetryPolicy, RetryExhaustedError, retry_async
from backend.app.models.enums import UserRole
from backend.app.services.notifications.templates import RenderedMessage, get_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRequest:
    """
    One message to send.
    
    Recipients are explicit user ids and/or every active user holding
    one of the given roles.
    """
    template: str
    context: Dict[str, Any] = field(default_factory=dict)
    user_ids: Tuple[int, ...] = ()
    roles: Tuple[UserRole, ...] = ()


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    attempts: int
    message_id: Optional[str] = None
    error: Optional[str] = None


class NotificationDispatcher:
    
    def __init__(
        self,
        transport,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.transport = transport
        self.policy = policy or RetryPolicy(
            max_attempts=settings.notification_max_attempts,
            base_delay=settings.notification_backoff_seconds,
        )
        self._sleep = sleep or asyncio.sleep
    
    def render(self, request: NotificationRequest) -> RenderedMessage:
        """Raises UnknownTemplateError for unregistered template keys."""
        return get_template(request.template)(request.context)
    
    async def send(self, request: NotificationRequest) -> DeliveryResult:
        message = self.render(request)
        attempts = 0
        
        async def attempt():
            nonlocal attempts
            attempts += 1
            return await self.transport.deliver(request, message)
        
        try:
            message_id = await retry_async(
                attempt, self.policy, sleep=self._sleep, label=f"notification {request.template}"
            )
        except RetryExhaustedError as e:
            logger.error("Notification %s not delivered: %s", request.template, e.last_error)
            return DeliveryResult(success=False, attempts=attempts, error=str(e.last_error))
        
        return DeliveryResult(success=True, attempts=attempts, message_id=message_id)
