# docsign/fields/services.py

"""
Business logic layer for field mutations.

Every mutation runs in one transaction: the field, its recipient and the
document are re-read from fresh rows, the preconditions are checked in a fixed
order, and the audit entry and outbox event are written together with the
state change.
"""

from datetime import datetime
from typing import Optional, Tuple

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.audit_trail.schemas import AuditLogType, RequestMetadata
from docsign.audit_trail.services import audit_trail_service
from docsign.core.db import get_async_db
from docsign.documents.models import Document, Recipient
from docsign.documents.schemas import DocumentStatus, SigningStatus
from docsign.fields.exceptions import (
    DocumentNotPendingException, FieldMutationException, FieldNotFoundException,
    ForbiddenFieldActionException, RecipientAlreadySignedException, UnauthorizedException,
)
from docsign.fields.models import Field
from docsign.fields.repository import FieldRepository
from docsign.fields.schemas import SignatureKind, safe_parse_field_meta
from docsign.fields.validators import SigningContext, validate_field_value
from docsign.notifications.schemas import EventType
from docsign.notifications.services import notification_service
from docsign.utils.logger import get_logger

logger = get_logger(__name__)


def get_field_repository(db: AsyncSession = Depends(get_async_db)) -> FieldRepository:
    """Dependency to get FieldRepository instance."""
    return FieldRepository(db)


class FieldMutationService:
    """
    Inserts and removes recipient field values.
    """

    def __init__(self, repo: FieldRepository = Depends(get_field_repository)):
        self.repo = repo

    # === Preconditions ===

    async def _load_for_mutation(self, field_id: int, token: str) -> Tuple[Recipient, Document, Field]:
        """
        Resolve and lock the recipient and the field, checking in order: the
        token, field ownership, the document status and the recipient status.

        The recipient row lock keeps a concurrent completion from finishing
        between these checks and the write.
        """
        recipient = await self.repo.get_by_token(token, for_update=True)
        if recipient is None:
            raise UnauthorizedException()

        field = await self.repo.get_recipient_field(field_id, recipient.id)
        if field is None:
            raise FieldNotFoundException(field_id)

        document = await self.repo.get_document(recipient.document_id)
        if document.status != DocumentStatus.PENDING:
            raise DocumentNotPendingException(document.id, field_id=field_id)

        if recipient.signing_status == SigningStatus.SIGNED:
            raise RecipientAlreadySignedException(recipient.id, field_id=field_id)

        return recipient, document, field

    # === Mutations ===

    async def insert_field(
        self,
        field_id: int,
        token: str,
        value: str,
        kind: Optional[SignatureKind] = None,
        request_metadata: Optional[RequestMetadata] = None,
        now: Optional[datetime] = None,
    ) -> Field:
        """
        Store a value into a field, replacing any previous value.

        Raises:
            UnauthorizedException: the token does not resolve to a recipient.
            FieldMutationException: a precondition or the value check failed.
        """
        try:
            recipient, document, field = await self._load_for_mutation(field_id, token)

            meta = safe_parse_field_meta(field.type, field.field_meta)
            if meta is not None and meta.read_only:
                raise ForbiddenFieldActionException("Field is read only", field_id=field_id)

            ctx = SigningContext.from_document_meta(document.document_meta, now=now)
            field_value = validate_field_value(field.type, field.field_meta, value, kind, ctx)

            # Re-signing replaces the previous value within this transaction
            await self.repo.delete_signature(field)

            field.custom_text = field_value.custom_text
            field.inserted = True
            if field_value.has_signature:
                await self.repo.add_signature(
                    field,
                    signature_image_as_base64=field_value.signature_image_as_base64,
                    typed_signature=field_value.typed_signature,
                )
            await self.repo.flush()

            await audit_trail_service.create_audit_log(
                self.repo.db, AuditLogType.DOCUMENT_FIELD_INSERTED,
                document_id=field.document_id,
                recipient=recipient,
                data={
                    "field_id": field.secondary_id,
                    "field_type": field.type.value,
                    "recipient_id": recipient.id,
                    "recipient_role": recipient.role.value,
                    "field": field_value.summary,
                },
                request_metadata=request_metadata,
            )
            await notification_service.enqueue(
                self.repo.db, EventType.FIELD_SIGNED,
                document_id=field.document_id,
                recipient_id=recipient.id,
                field_id=field.id,
                payload={"field_type": field.type.value, "secondary_id": field.secondary_id},
            )

            await self.repo.commit()
            logger.info(
                "Field inserted", field_id=field.id, field_type=field.type.value,
                recipient_id=recipient.id, document_id=field.document_id,
            )
            return field

        except (FieldMutationException, UnauthorizedException) as e:
            await self.repo.rollback()
            logger.warning("Field insert rejected", field_id=field_id, code=e.code, reason=e.message)
            raise
        except Exception as e:
            await self.repo.rollback()
            logger.error("Error inserting field", field_id=field_id, error=str(e), exc_info=True)
            raise

    async def remove_field(
        self,
        field_id: int,
        token: str,
        request_metadata: Optional[RequestMetadata] = None,
    ) -> Field:
        """
        Clear a field's value. Removing a field that holds no value is a no-op.
        """
        try:
            recipient, _, field = await self._load_for_mutation(field_id, token)

            if not field.inserted:
                await self.repo.commit()
                logger.debug("Field not inserted, nothing to remove", field_id=field_id)
                return field

            await self.repo.delete_signature(field)
            field.custom_text = ""
            field.inserted = False
            await self.repo.flush()

            await audit_trail_service.create_audit_log(
                self.repo.db, AuditLogType.DOCUMENT_FIELD_UNINSERTED,
                document_id=field.document_id,
                recipient=recipient,
                data={
                    "field_id": field.secondary_id,
                    "field_type": field.type.value,
                    "recipient_id": recipient.id,
                    "recipient_role": recipient.role.value,
                },
                request_metadata=request_metadata,
            )
            await notification_service.enqueue(
                self.repo.db, EventType.FIELD_UNSIGNED,
                document_id=field.document_id,
                recipient_id=recipient.id,
                field_id=field.id,
                payload={"field_type": field.type.value, "secondary_id": field.secondary_id},
            )

            await self.repo.commit()
            logger.info(
                "Field removed", field_id=field.id, field_type=field.type.value,
                recipient_id=recipient.id, document_id=field.document_id,
            )
            return field

        except (FieldMutationException, UnauthorizedException) as e:
            await self.repo.rollback()
            logger.warning("Field removal rejected", field_id=field_id, code=e.code, reason=e.message)
            raise
        except Exception as e:
            await self.repo.rollback()
            logger.error("Error removing field", field_id=field_id, error=str(e), exc_info=True)
            raise
