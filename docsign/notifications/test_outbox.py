import asyncio
from datetime import datetime, timedelta, timezone

from docsign.core.config import settings
from docsign.notifications.models import SigningEvent
from docsign.notifications.schemas import EventStatus, EventType
from docsign.notifications.services import notification_service
from docsign.notifications.sinks import RedisEventSink
from docsign.testing_dependencies import InMemoryEventSink, make_document


async def enqueue(session_factory, document_id, event_type=EventType.FIELD_SIGNED):
    async with session_factory() as db:
        event = await notification_service.enqueue(db, event_type, document_id=document_id, payload={"n": 1})
        await db.commit()
        return event.id


async def test_events_are_not_visible_until_commit(session_factory, db_session):
    document = make_document(db_session)

    async with session_factory() as db:
        await notification_service.enqueue(db, EventType.FIELD_SIGNED, document_id=document.id)
        await db.rollback()

    assert db_session.query(SigningEvent).count() == 0


async def test_dispatch_delivers_pending_events(session_factory, db_session, event_sink):
    document = make_document(db_session)
    first = await enqueue(session_factory, document.id)
    second = await enqueue(session_factory, document.id, EventType.DOCUMENT_SIGNED)

    result = await notification_service.dispatch_pending(session_factory, event_sink)

    assert result.delivered == 2
    assert event_sink.event_types == ["FIELD_SIGNED", "DOCUMENT_SIGNED"]
    assert event_sink.published[0][1]["id"] == first
    assert event_sink.published[1][1]["document_id"] == document.id

    db_session.expire_all()
    stored = db_session.get(SigningEvent, second)
    assert stored.status == EventStatus.DELIVERED
    assert stored.delivered_at is not None

    # Delivered events are not published again
    result = await notification_service.dispatch_pending(session_factory, event_sink)
    assert result.delivered == 0
    assert len(event_sink.published) == 2


async def test_failed_publish_is_retried_until_the_attempt_limit(session_factory, db_session, event_sink):
    document = make_document(db_session)
    event_id = await enqueue(session_factory, document.id)
    event_sink.fail = True

    for attempt in range(1, settings.event_max_attempts):
        result = await notification_service.dispatch_pending(session_factory, event_sink)
        assert result.failed == 1

        db_session.expire_all()
        stored = db_session.get(SigningEvent, event_id)
        assert stored.status == EventStatus.PENDING
        assert stored.attempts == attempt
        assert "unavailable" in stored.last_error

    result = await notification_service.dispatch_pending(session_factory, event_sink)
    assert result.gave_up == 1

    db_session.expire_all()
    assert db_session.get(SigningEvent, event_id).status == EventStatus.FAILED


def test_redis_channel_name():
    sink = RedisEventSink(url="redis://localhost:6379/0", channel_prefix="docsign-events")

    assert sink.channel_for("FIELD_SIGNED") == "docsign-events:FIELD_SIGNED"


class SlowEventSink(InMemoryEventSink):
    async def publish(self, event_type, message):
        await asyncio.sleep(0.05)
        await super().publish(event_type, message)


async def test_concurrent_dispatches_publish_an_event_once(session_factory, db_session):
    document = make_document(db_session)
    event_id = await enqueue(session_factory, document.id)
    sink = SlowEventSink()

    results = await asyncio.gather(
        notification_service.dispatch_pending(session_factory, sink),
        notification_service.dispatch_pending(session_factory, sink),
    )

    assert [message["id"] for _, message in sink.published] == [event_id]
    assert sum(result.delivered for result in results) == 1

    db_session.expire_all()
    stored = db_session.get(SigningEvent, event_id)
    assert stored.status == EventStatus.DELIVERED
    assert stored.attempts == 1
    assert stored.claimed_at is None


async def test_dispatch_leaves_events_claimed_by_another_dispatcher(session_factory, db_session, event_sink):
    document = make_document(db_session)
    event_id = await enqueue(session_factory, document.id)

    stored = db_session.get(SigningEvent, event_id)
    stored.status = EventStatus.DISPATCHING
    stored.claimed_at = datetime.now(timezone.utc)
    db_session.commit()

    result = await notification_service.dispatch_pending(session_factory, event_sink)

    assert result.delivered == 0
    assert event_sink.published == []


async def test_abandoned_claim_is_taken_over(session_factory, db_session, event_sink):
    document = make_document(db_session)
    event_id = await enqueue(session_factory, document.id)

    stored = db_session.get(SigningEvent, event_id)
    stored.status = EventStatus.DISPATCHING
    stored.attempts = 1
    stored.claimed_at = datetime.now(timezone.utc) - timedelta(seconds=settings.event_claim_timeout_seconds + 60)
    db_session.commit()

    result = await notification_service.dispatch_pending(session_factory, event_sink)

    assert result.delivered == 1
    db_session.expire_all()
    stored = db_session.get(SigningEvent, event_id)
    assert stored.status == EventStatus.DELIVERED
    assert stored.attempts == 2


async def test_event_is_claimed_once(session_factory, db_session):
    document = make_document(db_session)
    event_id = await enqueue(session_factory, document.id)

    async with session_factory() as db:
        assert await notification_service.claim_event(db, event_id) == 1
        assert await notification_service.claim_event(db, event_id) is None
