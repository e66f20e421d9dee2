import pytest

from docsign.audit_trail.models import DocumentAuditLog
from docsign.audit_trail.schemas import AuditLogType, RequestMetadata
from docsign.documents.schemas import DocumentStatus, SigningStatus
from docsign.fields.exceptions import (
    DocumentNotPendingException, ErrorCode, FieldNotFoundException, FieldValidationException,
    ForbiddenFieldActionException, RecipientAlreadySignedException, UnauthorizedException,
)
from docsign.fields.models import Field, Signature
from docsign.fields.repository import FieldRepository
from docsign.fields.schemas import FieldType, SignatureKind
from docsign.fields.services import FieldMutationService
from docsign.notifications.models import SigningEvent
from docsign.notifications.schemas import EventType
from docsign.testing_dependencies import make_document, make_field, make_recipient

PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="


async def insert(session_factory, field_id, token, value, kind=None, request_metadata=None):
    async with session_factory() as db:
        service = FieldMutationService(FieldRepository(db))
        return await service.insert_field(field_id, token, value, kind=kind, request_metadata=request_metadata)


async def remove(session_factory, field_id, token):
    async with session_factory() as db:
        return await FieldMutationService(FieldRepository(db)).remove_field(field_id, token)


def audit_types(db_session, document_id):
    db_session.expire_all()
    logs = db_session.query(DocumentAuditLog).filter_by(document_id=document_id).order_by(DocumentAuditLog.id)
    return [log.type for log in logs]


def event_types(db_session, document_id):
    db_session.expire_all()
    events = db_session.query(SigningEvent).filter_by(document_id=document_id).order_by(SigningEvent.id)
    return [event.event_type for event in events]


def stored_field(db_session, field_id):
    db_session.expire_all()
    field = db_session.get(Field, field_id)
    signatures = db_session.query(Signature).filter_by(field_id=field_id).all()
    return field, signatures


@pytest.fixture
def document(db_session):
    return make_document(db_session)


@pytest.fixture
def signer(db_session, document):
    return make_recipient(db_session, document)


async def test_insert_text_field(session_factory, db_session, document, signer):
    field = make_field(db_session, signer, FieldType.TEXT)
    metadata = RequestMetadata(ip_address="10.0.0.1", user_agent="pytest")

    result = await insert(session_factory, field.id, signer.token, "Acme Corp", request_metadata=metadata)

    assert result.inserted is True
    assert result.custom_text == "Acme Corp"

    stored, signatures = stored_field(db_session, field.id)
    assert stored.inserted is True
    assert stored.custom_text == "Acme Corp"
    assert signatures == []

    log = db_session.query(DocumentAuditLog).one()
    assert log.type == AuditLogType.DOCUMENT_FIELD_INSERTED
    assert log.email == signer.email
    assert log.ip_address == "10.0.0.1"
    assert log.data["field_id"] == stored.secondary_id
    assert log.data["field_type"] == "TEXT"
    assert event_types(db_session, document.id) == [EventType.FIELD_SIGNED]


@pytest.mark.parametrize(
    "field_type,value",
    [
        (FieldType.SIGNATURE, "Ada Lovelace"),
        (FieldType.SIGNATURE, PNG),
        (FieldType.NAME, "Ada Lovelace"),
        (FieldType.EMAIL, "ada@example.com"),
        (FieldType.DATE, "yyyy-MM-dd"),
    ],
)
async def test_remove_restores_empty_field(session_factory, db_session, document, signer, field_type, value):
    field = make_field(db_session, signer, field_type)

    await insert(session_factory, field.id, signer.token, value)
    result = await remove(session_factory, field.id, signer.token)

    assert result.inserted is False
    stored, signatures = stored_field(db_session, field.id)
    assert stored.inserted is False
    assert stored.custom_text == ""
    assert signatures == []
    assert audit_types(db_session, document.id) == [
        AuditLogType.DOCUMENT_FIELD_INSERTED, AuditLogType.DOCUMENT_FIELD_UNINSERTED,
    ]
    assert event_types(db_session, document.id) == [EventType.FIELD_SIGNED, EventType.FIELD_UNSIGNED]


async def test_remove_of_empty_field_is_a_noop(session_factory, db_session, document, signer):
    field = make_field(db_session, signer, FieldType.NAME)

    await insert(session_factory, field.id, signer.token, "Ada")
    await remove(session_factory, field.id, signer.token)
    await remove(session_factory, field.id, signer.token)
    await remove(session_factory, field.id, signer.token)

    assert audit_types(db_session, document.id) == [
        AuditLogType.DOCUMENT_FIELD_INSERTED, AuditLogType.DOCUMENT_FIELD_UNINSERTED,
    ]
    assert len(event_types(db_session, document.id)) == 2


async def test_resign_replaces_typed_signature_with_image(session_factory, db_session, document, signer):
    field = make_field(db_session, signer, FieldType.SIGNATURE)

    await insert(session_factory, field.id, signer.token, "Ada Lovelace", kind=SignatureKind.TYPED)
    result = await insert(session_factory, field.id, signer.token, PNG, kind=SignatureKind.IMAGE)

    assert result.signature.signature_image_as_base64 == PNG
    stored, signatures = stored_field(db_session, field.id)
    assert stored.inserted is True
    assert stored.custom_text == ""
    assert len(signatures) == 1
    assert signatures[0].signature_image_as_base64 == PNG
    assert signatures[0].typed_signature is None

    # The implicit removal on re-sign is not audited
    assert audit_types(db_session, document.id) == [
        AuditLogType.DOCUMENT_FIELD_INSERTED, AuditLogType.DOCUMENT_FIELD_INSERTED,
    ]


async def test_field_never_holds_text_and_signature(session_factory, db_session, document, signer):
    field = make_field(db_session, signer, FieldType.SIGNATURE)
    steps = [
        ("insert", "Ada"),
        ("insert", PNG),
        ("remove", None),
        ("insert", "Ada L."),
        ("insert", "Ada Lovelace"),
        ("remove", None),
        ("remove", None),
    ]

    for action, value in steps:
        if action == "insert":
            await insert(session_factory, field.id, signer.token, value)
        else:
            await remove(session_factory, field.id, signer.token)

        stored, signatures = stored_field(db_session, field.id)
        assert len(signatures) <= 1
        assert not (stored.custom_text and signatures)
        assert stored.inserted == bool(stored.custom_text or signatures)


async def test_unknown_token_is_unauthorized(session_factory, db_session, signer):
    field = make_field(db_session, signer, FieldType.NAME)

    with pytest.raises(UnauthorizedException) as exc_info:
        await insert(session_factory, field.id, "not-a-token", "Ada")
    assert exc_info.value.code == ErrorCode.UNAUTHORIZED

    with pytest.raises(UnauthorizedException):
        await remove(session_factory, field.id, "not-a-token")


async def test_field_of_another_recipient_is_not_found(session_factory, db_session, document, signer):
    other = make_recipient(db_session, document, name="Grace Hopper")
    field = make_field(db_session, other, FieldType.NAME)

    with pytest.raises(FieldNotFoundException):
        await insert(session_factory, field.id, signer.token, "Ada")


async def test_missing_field_is_checked_before_document_status(session_factory, db_session):
    document = make_document(db_session, status=DocumentStatus.COMPLETED)
    recipient = make_recipient(db_session, document)

    with pytest.raises(FieldNotFoundException):
        await insert(session_factory, 12345, recipient.token, "Ada")


async def test_document_status_is_checked_before_recipient_status(session_factory, db_session):
    document = make_document(db_session, status=DocumentStatus.COMPLETED)
    recipient = make_recipient(db_session, document, signing_status=SigningStatus.SIGNED)
    field = make_field(db_session, recipient, FieldType.NAME)

    with pytest.raises(DocumentNotPendingException) as exc_info:
        await insert(session_factory, field.id, recipient.token, "Ada")
    assert exc_info.value.code == ErrorCode.INVALID_STATE


async def test_signed_recipient_cannot_change_fields(session_factory, db_session, document):
    recipient = make_recipient(db_session, document, signing_status=SigningStatus.SIGNED)
    field = make_field(db_session, recipient, FieldType.NAME, inserted=True, custom_text="Ada")

    with pytest.raises(RecipientAlreadySignedException):
        await insert(session_factory, field.id, recipient.token, "Grace")
    with pytest.raises(RecipientAlreadySignedException):
        await remove(session_factory, field.id, recipient.token)

    stored, _ = stored_field(db_session, field.id)
    assert stored.custom_text == "Ada"


async def test_read_only_field_is_forbidden_before_value_validation(session_factory, db_session, signer):
    field = make_field(db_session, signer, FieldType.EMAIL, field_meta={"type": "email", "read_only": True})

    with pytest.raises(ForbiddenFieldActionException):
        await insert(session_factory, field.id, signer.token, "not an email")


async def test_rejected_value_leaves_no_trace(session_factory, db_session, document, signer):
    field = make_field(db_session, signer, FieldType.EMAIL)

    with pytest.raises(FieldValidationException):
        await insert(session_factory, field.id, signer.token, "not an email")

    stored, _ = stored_field(db_session, field.id)
    assert stored.inserted is False
    assert audit_types(db_session, document.id) == []
    assert event_types(db_session, document.id) == []


async def test_read_only_in_editor_key_style_is_honoured(session_factory, db_session, document, signer):
    field = make_field(db_session, signer, FieldType.TEXT, field_meta={"type": "text", "readOnly": True})

    with pytest.raises(ForbiddenFieldActionException):
        await insert(session_factory, field.id, signer.token, "hello")

    stored, _ = stored_field(db_session, field.id)
    assert stored.inserted is False
    assert audit_types(db_session, document.id) == []
