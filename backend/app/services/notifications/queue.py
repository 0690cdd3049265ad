"""
In-process notification queue.

A FIFO asyncio.Queue drained by exactly one worker task, with a fixed
delay between sends. A job whose delivery fails is put back at the end
of the queue until it has been requeued max_requeues times; after that it
is dropped, logged and written to the dead letter table.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from backend.app.core.config import settings
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.services.notifications.dispatcher import (
    NotificationDispatcher,
    NotificationRequest,
    DeliveryResult,
)

logger = logging.getLogger(__name__)

DeadLetterHandler = Callable[["QueuedJob", DeliveryResult], Awaitable[None]]


@dataclass
class QueuedJob:
    request: NotificationRequest
    requeues: int = 0


class DeadLetterWriter:
    """Persists dropped jobs to the dead_letter_queue table."""
    
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
    
    async def __call__(self, job: QueuedJob, result: DeliveryResult) -> None:
        async with self.session_factory() as db:
            db.add(DeadLetterQueue(
                task_name="notification",
                template=job.request.template,
                recipient=",".join(str(uid) for uid in job.request.user_ids) or None,
                error_message=result.error or "delivery failed",
                payload={
                    "context": job.request.context,
                    "user_ids": list(job.request.user_ids),
                    "roles": [r.value for r in job.request.roles],
                },
                status=DLQStatus.FAILED,
                requeue_count=job.requeues,
                last_retry_at=datetime.now(timezone.utc),
            ))
            await db.commit()


class NotificationQueue:
    
    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        send_delay: Optional[float] = None,
        max_requeues: Optional[int] = None,
        dead_letter: Optional[DeadLetterHandler] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.dispatcher = dispatcher
        self.send_delay = settings.notification_send_delay_seconds if send_delay is None else send_delay
        self.max_requeues = settings.notification_max_requeues if max_requeues is None else max_requeues
        self.dead_letter = dead_letter
        self._sleep = sleep or asyncio.sleep
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
    
    @property
    def pending(self) -> int:
        return self._queue.qsize()
    
    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()
    
    def enqueue(self, request: NotificationRequest) -> None:
        """
        Queue a message without waiting for delivery.
        
        Raises:
            UnknownTemplateError: before anything is queued
        """
        self.dispatcher.render(request)
        self._queue.put_nowait(QueuedJob(request))
    
    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-queue")
        logger.info("Notification queue worker started")
    
    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification queue worker stopped (%d pending)", self.pending)
    
    async def join(self) -> None:
        """Wait until the running worker has handled every queued job."""
        await self._queue.join()
    
    async def process_pending(self) -> int:
        """
        Drain the queue in the calling task, requeues included.
        
        Only valid while the worker is not running.
        """
        if self.running:
            raise RuntimeError("process_pending() called while the worker is running")
        processed = 0
        while not self._queue.empty():
            job = self._queue.get_nowait()
            try:
                await self._process(job)
            finally:
                self._queue.task_done()
            processed += 1
        return processed
    
    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
            except Exception:
                logger.exception("Notification job %s crashed", job.request.template)
            finally:
                self._queue.task_done()
            await self._sleep(self.send_delay)
    
    async def _process(self, job: QueuedJob) -> None:
        result = await self.dispatcher.send(job.request)
        if result.success:
            return
        
        if job.requeues < self.max_requeues:
            job.requeues += 1
            logger.warning(
                "Requeueing notification %s (%d/%d)",
                job.request.template, job.requeues, self.max_requeues
            )
            self._queue.put_nowait(job)
            return
        
        logger.error(
            "Dropping notification %s after %d requeues: %s",
            job.request.template, job.requeues, result.error
        )
        if self.dead_letter is not None:
            await self.dead_letter(job, result)


def build_notification_queue(session_factory: async_sessionmaker) -> NotificationQueue:
    """Queue wired to the transport named in settings.notification_transport."""
    from backend.app.services.notifications.transports import InAppTransport, LoggingTransport
    
    if settings.notification_transport == "log":
        transport = LoggingTransport()
    else:
        transport = InAppTransport(session_factory)
    return NotificationQueue(
        NotificationDispatcher(transport),
        dead_letter=DeadLetterWriter(session_factory),
    )
