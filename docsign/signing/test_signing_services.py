import asyncio
from datetime import datetime, timezone

import pytest

from docsign.audit_trail.models import DocumentAuditLog
from docsign.audit_trail.schemas import AuditLogType
from docsign.documents.models import Document, Recipient
from docsign.documents.schemas import (
    DocumentStatus, ReadStatus, RecipientRole, SigningOrderMode, SigningStatus,
)
from docsign.fields.exceptions import (
    ErrorCode, InvalidStateException, RecipientAlreadySignedException, UnauthorizedException,
)
from docsign.fields.models import Field
from docsign.fields.repository import FieldRepository
from docsign.fields.schemas import FieldType
from docsign.notifications.models import SigningEvent
from docsign.notifications.schemas import EventType
from docsign.signing.services import AutoSignService, SigningService
from docsign.testing_dependencies import make_document, make_field, make_recipient

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


async def auto_sign(session_factory, token):
    return await AutoSignService(session_factory).auto_sign_date_fields(token, now=NOW)


async def load_session(session_factory, token):
    async with session_factory() as db:
        service = SigningService(FieldRepository(db), AutoSignService(session_factory))
        return await service.load_session(token, now=NOW)


async def complete(session_factory, token):
    async with session_factory() as db:
        service = SigningService(FieldRepository(db), AutoSignService(session_factory))
        return await service.complete_recipient(token, now=NOW)


def audit_types(db_session, document_id):
    db_session.expire_all()
    logs = db_session.query(DocumentAuditLog).filter_by(document_id=document_id).order_by(DocumentAuditLog.id)
    return [log.type for log in logs]


# === Auto-sign ===

async def test_auto_sign_fills_every_empty_date_field(session_factory, db_session):
    document = make_document(db_session, date_format="dd/MM/yyyy")
    recipient = make_recipient(db_session, document)
    fields = [make_field(db_session, recipient, FieldType.DATE) for _ in range(3)]
    name_field = make_field(db_session, recipient, FieldType.NAME)

    result = await auto_sign(session_factory, recipient.token)

    assert sorted(result.inserted_field_ids) == sorted(field.id for field in fields)
    assert result.failures == []
    assert result.auto_sign_failed is False

    db_session.expire_all()
    for field in fields:
        stored = db_session.get(Field, field.id)
        assert stored.inserted is True
        assert stored.custom_text == "15/03/2024"
    assert db_session.get(Field, name_field.id).inserted is False
    assert audit_types(db_session, document.id).count(AuditLogType.DOCUMENT_FIELD_INSERTED) == 3


async def test_auto_sign_keeps_successes_when_one_field_fails(session_factory, db_session):
    document = make_document(db_session)
    recipient = make_recipient(db_session, document)
    first = make_field(db_session, recipient, FieldType.DATE)
    second = make_field(db_session, recipient, FieldType.DATE, field_meta={"type": "date", "read_only": True})
    third = make_field(db_session, recipient, FieldType.DATE)

    result = await auto_sign(session_factory, recipient.token)

    assert sorted(result.inserted_field_ids) == [first.id, third.id]
    assert len(result.failures) == 1
    assert result.failures[0].field_id == second.id
    assert result.failures[0].code == ErrorCode.FORBIDDEN
    assert result.auto_sign_failed is True

    db_session.expire_all()
    assert db_session.get(Field, first.id).inserted is True
    assert db_session.get(Field, second.id).inserted is False
    assert db_session.get(Field, third.id).inserted is True


async def test_auto_sign_skips_recipient_whose_turn_it_is_not(session_factory, db_session):
    document = make_document(db_session, signing_order=SigningOrderMode.SEQUENTIAL)
    make_recipient(db_session, document, name="Ada Lovelace", signing_order=1)
    second = make_recipient(db_session, document, name="Grace Hopper", signing_order=2)
    field = make_field(db_session, second, FieldType.DATE)

    result = await auto_sign(session_factory, second.token)

    assert result.inserted_field_ids == []
    assert result.skipped_reason == "not recipient's turn"
    db_session.expire_all()
    assert db_session.get(Field, field.id).inserted is False


@pytest.mark.parametrize(
    "document_status,role,signing_status",
    [
        (DocumentStatus.DRAFT, RecipientRole.SIGNER, SigningStatus.NOT_SIGNED),
        (DocumentStatus.PENDING, RecipientRole.ASSISTANT, SigningStatus.NOT_SIGNED),
        (DocumentStatus.PENDING, RecipientRole.SIGNER, SigningStatus.SIGNED),
    ],
)
async def test_auto_sign_skips(session_factory, db_session, document_status, role, signing_status):
    document = make_document(db_session, status=document_status)
    recipient = make_recipient(db_session, document, role=role, signing_status=signing_status)
    make_field(db_session, recipient, FieldType.DATE)

    result = await auto_sign(session_factory, recipient.token)

    assert result.inserted_field_ids == []
    assert result.skipped_reason is not None


async def test_auto_sign_with_unknown_token(session_factory, db_session):
    with pytest.raises(UnauthorizedException):
        await auto_sign(session_factory, "not-a-token")


# === Signing session ===

async def test_first_view_is_recorded_once(session_factory, db_session):
    document = make_document(db_session, redirect_url="https://example.com/done")
    recipient = make_recipient(db_session, document)
    date_field = make_field(db_session, recipient, FieldType.DATE)

    session = await load_session(session_factory, recipient.token)
    await load_session(session_factory, recipient.token)

    assert session.recipient.read_status == ReadStatus.OPENED
    assert session.is_recipients_turn is True
    assert session.next_recipient is None
    assert session.redirect_url == "https://example.com/done"
    assert session.auto_sign.inserted_field_ids == [date_field.id]
    assert [field.inserted for field in session.fields] == [True]

    types = audit_types(db_session, document.id)
    assert types.count(AuditLogType.DOCUMENT_OPENED) == 1
    assert types.count(AuditLogType.DOCUMENT_FIELD_INSERTED) == 1

    opened_events = db_session.query(SigningEvent).filter_by(event_type=EventType.DOCUMENT_OPENED).count()
    assert opened_events == 1


async def test_session_reports_next_recipient(session_factory, db_session):
    document = make_document(db_session, signing_order=SigningOrderMode.SEQUENTIAL)
    first = make_recipient(db_session, document, name="Ada Lovelace", signing_order=1)
    second = make_recipient(db_session, document, name="Grace Hopper", signing_order=2)

    session = await load_session(session_factory, first.token)

    assert session.is_recipients_turn is True
    assert session.next_recipient.id == second.id

    session = await load_session(session_factory, second.token)
    assert session.is_recipients_turn is False


async def test_load_session_with_unknown_token(session_factory, db_session):
    with pytest.raises(UnauthorizedException):
        await load_session(session_factory, "not-a-token")


# === Completion ===

async def test_complete_requires_required_fields(session_factory, db_session):
    document = make_document(db_session)
    recipient = make_recipient(db_session, document)
    signature = make_field(db_session, recipient, FieldType.SIGNATURE)
    make_field(db_session, recipient, FieldType.TEXT)

    with pytest.raises(InvalidStateException) as exc_info:
        await complete(session_factory, recipient.token)
    assert str(signature.id) in exc_info.value.message

    db_session.expire_all()
    assert db_session.get(Recipient, recipient.id).signing_status == SigningStatus.NOT_SIGNED


async def test_last_recipient_completes_the_document(session_factory, db_session):
    document = make_document(db_session, signing_order=SigningOrderMode.SEQUENTIAL)
    first = make_recipient(db_session, document, name="Ada Lovelace", signing_order=1)
    second = make_recipient(db_session, document, name="Grace Hopper", signing_order=2)
    make_field(db_session, first, FieldType.NAME, inserted=True, custom_text="Ada")

    with pytest.raises(InvalidStateException):
        await complete(session_factory, second.token)

    result = await complete(session_factory, first.token)
    assert result.document_completed is False
    assert result.document_status == DocumentStatus.PENDING
    assert result.next_recipient.id == second.id

    with pytest.raises(RecipientAlreadySignedException):
        await complete(session_factory, first.token)

    result = await complete(session_factory, second.token)
    assert result.document_completed is True
    assert result.document_status == DocumentStatus.COMPLETED

    db_session.expire_all()
    stored = db_session.get(Document, document.id)
    assert stored.status == DocumentStatus.COMPLETED
    assert stored.completed_at is not None
    assert audit_types(db_session, document.id) == [
        AuditLogType.DOCUMENT_RECIPIENT_COMPLETED,
        AuditLogType.DOCUMENT_RECIPIENT_COMPLETED,
        AuditLogType.DOCUMENT_COMPLETED,
    ]
    events = [event.event_type for event in db_session.query(SigningEvent).order_by(SigningEvent.id)]
    assert events == [EventType.DOCUMENT_SIGNED, EventType.DOCUMENT_SIGNED, EventType.DOCUMENT_COMPLETED]


async def test_first_recipient_of_a_parallel_document_leaves_it_pending(session_factory, db_session):
    document = make_document(db_session)
    first = make_recipient(db_session, document, name="Ada Lovelace")
    make_recipient(db_session, document, name="Grace Hopper")

    result = await complete(session_factory, first.token)

    assert result.recipient.signing_status == SigningStatus.SIGNED
    assert result.document_completed is False
    assert result.document_status == DocumentStatus.PENDING


async def test_concurrent_completions_complete_the_document(session_factory, db_session):
    document = make_document(db_session)
    first = make_recipient(db_session, document, name="Ada Lovelace")
    second = make_recipient(db_session, document, name="Grace Hopper")

    results = await asyncio.gather(
        complete(session_factory, first.token),
        complete(session_factory, second.token),
    )

    assert sorted(result.document_completed for result in results) == [False, True]

    db_session.expire_all()
    assert db_session.get(Document, document.id).status == DocumentStatus.COMPLETED
    statuses = [recipient.signing_status for recipient in db_session.query(Recipient).filter_by(document_id=document.id)]
    assert statuses == [SigningStatus.SIGNED, SigningStatus.SIGNED]
    assert audit_types(db_session, document.id).count(AuditLogType.DOCUMENT_COMPLETED) == 1


async def test_concurrent_first_views_record_one_open(session_factory, db_session):
    document = make_document(db_session)
    recipient = make_recipient(db_session, document)

    sessions = await asyncio.gather(
        load_session(session_factory, recipient.token),
        load_session(session_factory, recipient.token),
    )

    assert [session.recipient.read_status for session in sessions] == [ReadStatus.OPENED, ReadStatus.OPENED]
    assert audit_types(db_session, document.id).count(AuditLogType.DOCUMENT_OPENED) == 1
    opened_events = db_session.query(SigningEvent).filter_by(event_type=EventType.DOCUMENT_OPENED).count()
    assert opened_events == 1
