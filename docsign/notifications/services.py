## docsign/notifications/services.py

# Standard library imports
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

# Third party imports
from sqlalchemy import and_, asc, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Local imports
from docsign.core.config import settings
from docsign.utils.logger import get_logger
from docsign.notifications.models import SigningEvent
from docsign.notifications.schemas import DispatchResult, EventStatus, EventType, SigningEventResponse
from docsign.notifications.sinks import EventSink

logger = get_logger(__name__)


class NotificationService:
    """Transactional outbox for signing events"""

    async def enqueue(
            self, db: AsyncSession,
            event_type: EventType,
            document_id: int,
            recipient_id: Optional[int] = None,
            field_id: Optional[int] = None,
            payload: Optional[Dict[str, Any]] = None,
    ) -> SigningEvent:
        """
        Add an event to the caller's transaction. Nothing is published until
        the transaction commits and the outbox is dispatched.
        """
        event = SigningEvent(
            event_type=event_type,
            document_id=document_id,
            recipient_id=recipient_id,
            field_id=field_id,
            payload=payload or {},
            status=EventStatus.PENDING,
            attempts=0,
        )
        db.add(event)
        await db.flush()
        return event

    @staticmethod
    def _claimable(now: datetime):
        """Pending events, and claims abandoned by a dispatcher that died"""
        stale_before = now - timedelta(seconds=settings.event_claim_timeout_seconds)
        return or_(
            SigningEvent.status == EventStatus.PENDING,
            and_(
                SigningEvent.status == EventStatus.DISPATCHING,
                SigningEvent.claimed_at < stale_before,
            ),
        )

    async def get_pending_events(
            self, db: AsyncSession,
            event_ids: Optional[List[int]] = None,
            limit: Optional[int] = None,
    ) -> List[SigningEvent]:
        """Claimable events, oldest first"""
        stmt = select(SigningEvent).where(self._claimable(datetime.now(timezone.utc)))
        if event_ids is not None:
            stmt = stmt.where(SigningEvent.id.in_(event_ids))
        stmt = stmt.order_by(asc(SigningEvent.id)).limit(limit or settings.event_dispatch_batch_size)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def claim_event(self, db: AsyncSession, event_id: int) -> Optional[int]:
        """
        Claim an event for publishing and count the attempt.

        Returns the attempt number, or None when another dispatcher holds the
        event or has already delivered it.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            update(SigningEvent)
            .where(SigningEvent.id == event_id, self._claimable(now))
            .values(
                status=EventStatus.DISPATCHING,
                claimed_at=now,
                attempts=SigningEvent.attempts + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:
            await db.rollback()
            return None

        attempts = await db.scalar(select(SigningEvent.attempts).where(SigningEvent.id == event_id))
        await db.commit()
        return attempts

    async def _finish(self, db: AsyncSession, event_id: int, **values: Any) -> None:
        await db.execute(
            update(SigningEvent)
            .where(SigningEvent.id == event_id, SigningEvent.status == EventStatus.DISPATCHING)
            .values(claimed_at=None, **values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    async def dispatch_pending(
            self, session_factory: async_sessionmaker,
            sink: EventSink,
            event_ids: Optional[List[int]] = None,
            limit: Optional[int] = None,
    ) -> DispatchResult:
        """
        Publish pending outbox events to the sink.

        Every event is claimed in its own transaction before it is published,
        so concurrent dispatchers never publish the same event. A failed
        publish puts the event back to pending until it reaches the attempt
        limit.
        """
        result = DispatchResult()

        async with session_factory() as db:
            events = await self.get_pending_events(db, event_ids=event_ids, limit=limit)
            messages = [
                (event.id, event.event_type.value, SigningEventResponse.model_validate(event).model_dump(mode="json"))
                for event in events
            ]
            await db.commit()

            for event_id, event_type, message in messages:
                attempts = await self.claim_event(db, event_id)
                if attempts is None:
                    result.skipped += 1
                    logger.debug("Signing event claimed elsewhere", event_id=event_id)
                    continue

                try:
                    await sink.publish(event_type, message)
                except Exception as e:
                    if attempts >= settings.event_max_attempts:
                        await self._finish(db, event_id, status=EventStatus.FAILED, last_error=str(e))
                        result.gave_up += 1
                        logger.error(
                            "Giving up on signing event", event_id=event_id,
                            event_type=event_type, attempts=attempts, error=str(e),
                        )
                    else:
                        await self._finish(db, event_id, status=EventStatus.PENDING, last_error=str(e))
                        result.failed += 1
                        logger.warning(
                            "Signing event publish failed", event_id=event_id,
                            event_type=event_type, attempts=attempts, error=str(e),
                        )
                else:
                    await self._finish(
                        db, event_id,
                        status=EventStatus.DELIVERED,
                        delivered_at=datetime.now(timezone.utc),
                        last_error=None,
                    )
                    result.delivered += 1

        if messages:
            logger.info(
                "Signing events dispatched", delivered=result.delivered,
                failed=result.failed, gave_up=result.gave_up, skipped=result.skipped,
            )
        return result


notification_service = NotificationService()
