# docsign/notifications/tasks.py

"""
Celery tasks for signing event delivery.

Events are normally published right after the request that produced them; this
periodic task picks up whatever that missed.
"""

import asyncio

from celery import shared_task

from docsign.core.db import AsyncSessionLocal, async_engine
from docsign.notifications.services import notification_service
from docsign.notifications.sinks import get_event_sink
from docsign.utils.logger import get_logger

logger = get_logger(__name__)


@shared_task(bind=True, name="docsign.notifications.tasks.dispatch_signing_events")
def dispatch_signing_events(self):
    """
    Publish every pending outbox event.
    """
    task_id = self.request.id
    logger.info("Starting signing event dispatch", task_id=task_id)

    async def _dispatch():
        try:
            return await notification_service.dispatch_pending(AsyncSessionLocal, get_event_sink())
        finally:
            # Pooled connections belong to this task's event loop
            await async_engine.dispose()

    try:
        result = asyncio.run(_dispatch())
    except Exception as e:
        logger.error("Signing event dispatch failed", task_id=task_id, error=str(e), exc_info=True)
        raise

    return result.model_dump()
