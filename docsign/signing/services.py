# docsign/signing/services.py

"""
Business logic for a recipient's signing session: opening the document,
auto-signing DATE fields and completing the recipient.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from docsign.audit_trail.schemas import AuditLogType, RequestMetadata
from docsign.audit_trail.services import audit_trail_service
from docsign.core.db import get_session_factory
from docsign.documents.models import Document, Recipient
from docsign.documents.schemas import (
    DocumentResponse, DocumentStatus, ReadStatus, RecipientResponse, RecipientRole, SigningStatus,
)
from docsign.fields.exceptions import (
    DocumentNotPendingException, ErrorCode, FieldMutationException, InvalidStateException,
    RecipientAlreadySignedException, UnauthorizedException,
)
from docsign.fields.models import Field
from docsign.fields.repository import FieldRepository
from docsign.fields.schemas import FieldResponse, FieldType, safe_parse_field_meta
from docsign.fields.services import FieldMutationService, get_field_repository
from docsign.fields.validators import SigningContext
from docsign.notifications.schemas import EventType
from docsign.notifications.services import notification_service
from docsign.recipients.ordering import is_recipients_turn, next_recipient
from docsign.signing.schemas import (
    AutoSignFailure, AutoSignResult, CompleteRecipientResponse, SigningSessionResponse,
)
from docsign.utils.logger import get_logger

logger = get_logger(__name__)


def is_field_required(field: Field) -> bool:
    """Fields with unreadable metadata are treated as required."""
    meta = safe_parse_field_meta(field.type, field.field_meta)
    return meta.required if meta is not None else True


def resolve_redirect_url(recipient: Recipient, document: Document) -> Optional[str]:
    if recipient.redirect_url:
        return recipient.redirect_url
    if document.document_meta is not None:
        return document.document_meta.redirect_url
    return None


def _recipient_response(recipient: Optional[Recipient]) -> Optional[RecipientResponse]:
    return RecipientResponse.model_validate(recipient) if recipient is not None else None


class AutoSignService:
    """
    Fills a recipient's empty DATE fields when they open the document.
    """

    def __init__(self, session_factory: async_sessionmaker = Depends(get_session_factory)):
        self.session_factory = session_factory

    def _skip_reason(self, recipient: Recipient, document: Document) -> Optional[str]:
        if document.status != DocumentStatus.PENDING:
            return "document not pending"
        if recipient.signing_status == SigningStatus.SIGNED:
            return "recipient already signed"
        if recipient.role == RecipientRole.ASSISTANT:
            return "assistants do not sign"
        if not is_recipients_turn(recipient, document.recipients, document.signing_order_mode):
            return "not recipient's turn"
        return None

    async def _insert_date_field(
        self, field_id: int, token: str, date_format: str,
        request_metadata: Optional[RequestMetadata], now: Optional[datetime],
    ) -> int:
        async with self.session_factory() as db:
            field_service = FieldMutationService(FieldRepository(db))
            await field_service.insert_field(
                field_id, token, date_format, request_metadata=request_metadata, now=now,
            )
        return field_id

    async def auto_sign_date_fields(
        self,
        token: str,
        request_metadata: Optional[RequestMetadata] = None,
        now: Optional[datetime] = None,
    ) -> AutoSignResult:
        """
        Insert the current date into every empty DATE field of the recipient.

        Each field is inserted concurrently in its own transaction. Failures are
        collected into the result instead of being raised, except for an
        invalid token which is re-raised once every insert has settled.
        """
        async with self.session_factory() as db:
            repo = FieldRepository(db)
            recipient = await repo.get_by_token(token)
            if recipient is None:
                raise UnauthorizedException()

            document = await repo.get_document(recipient.document_id)
            skipped_reason = self._skip_reason(recipient, document)
            if skipped_reason:
                logger.debug("Auto-sign skipped", recipient_id=recipient.id, reason=skipped_reason)
                return AutoSignResult(skipped_reason=skipped_reason)

            field_ids = await repo.list_uninserted_field_ids(recipient.id, FieldType.DATE)
            date_format = SigningContext.from_document_meta(document.document_meta).date_format
            recipient_id = recipient.id

        result = AutoSignResult()
        if not field_ids:
            return result

        outcomes = await asyncio.gather(
            *[
                self._insert_date_field(field_id, token, date_format, request_metadata, now)
                for field_id in field_ids
            ],
            return_exceptions=True,
        )

        unauthorized: Optional[UnauthorizedException] = None
        for field_id, outcome in zip(field_ids, outcomes):
            if isinstance(outcome, UnauthorizedException):
                unauthorized = outcome
                result.failures.append(AutoSignFailure(field_id=field_id, code=outcome.code, message=outcome.message))
            elif isinstance(outcome, FieldMutationException):
                result.failures.append(AutoSignFailure(field_id=field_id, code=outcome.code, message=outcome.message))
            elif isinstance(outcome, Exception):
                logger.error(
                    "Unexpected error auto-signing field", field_id=field_id,
                    error=str(outcome), exc_info=outcome,
                )
                result.failures.append(
                    AutoSignFailure(field_id=field_id, code=ErrorCode.INTERNAL_ERROR, message="Unexpected error")
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.inserted_field_ids.append(outcome)

        if result.failures:
            logger.warning(
                "Auto-sign failed for some fields", recipient_id=recipient_id,
                inserted=len(result.inserted_field_ids), failed=len(result.failures),
                failures=[failure.model_dump() for failure in result.failures],
            )
        else:
            logger.info("Auto-sign completed", recipient_id=recipient_id, inserted=len(result.inserted_field_ids))

        if unauthorized is not None:
            raise unauthorized
        return result


class SigningService:
    """
    Signing session of one recipient.
    """

    def __init__(
        self,
        repo: FieldRepository = Depends(get_field_repository),
        auto_sign_service: AutoSignService = Depends(),
    ):
        self.repo = repo
        self.auto_sign_service = auto_sign_service

    async def _get_recipient(self, token: str, for_update: bool = False) -> Recipient:
        recipient = await self.repo.get_by_token(token, for_update=for_update)
        if recipient is None:
            raise UnauthorizedException()
        return recipient

    async def mark_opened(self, recipient: Recipient, request_metadata: Optional[RequestMetadata] = None) -> bool:
        """
        Record the first view of the document by the recipient. Concurrent
        first loads race on a conditional update and only the winner writes
        the audit entry and event.
        """
        if recipient.read_status == ReadStatus.OPENED:
            return False
        if not await self.repo.mark_opened(recipient.id):
            return False

        await audit_trail_service.create_audit_log(
            self.repo.db, AuditLogType.DOCUMENT_OPENED,
            document_id=recipient.document_id,
            recipient=recipient,
            data={"recipient_id": recipient.id, "recipient_role": recipient.role.value},
            request_metadata=request_metadata,
        )
        await notification_service.enqueue(
            self.repo.db, EventType.DOCUMENT_OPENED,
            document_id=recipient.document_id,
            recipient_id=recipient.id,
        )
        return True

    async def load_session(
        self,
        token: str,
        request_metadata: Optional[RequestMetadata] = None,
        now: Optional[datetime] = None,
    ) -> SigningSessionResponse:
        """
        Load the signing session: mark the document viewed, auto-sign DATE
        fields and return the recipient's view of the document.
        """
        try:
            recipient = await self._get_recipient(token)
            opened = await self.mark_opened(recipient, request_metadata)
            await self.repo.commit()
        except UnauthorizedException:
            raise
        except Exception as e:
            await self.repo.rollback()
            logger.error("Error opening signing session", error=str(e), exc_info=True)
            raise

        if opened:
            logger.info("Document opened", recipient_id=recipient.id, document_id=recipient.document_id)

        auto_sign = await self.auto_sign_service.auto_sign_date_fields(token, request_metadata, now=now)

        # Re-read everything auto-sign may have changed
        recipient = await self._get_recipient(token)
        document = await self.repo.get_document(recipient.document_id)
        fields = await self.repo.list_recipient_fields(recipient.id)
        await self.repo.commit()

        mode = document.signing_order_mode
        return SigningSessionResponse(
            document=DocumentResponse.model_validate(document),
            recipient=RecipientResponse.model_validate(recipient),
            fields=[FieldResponse.model_validate(field) for field in fields],
            is_recipients_turn=is_recipients_turn(recipient, document.recipients, mode),
            next_recipient=_recipient_response(next_recipient(document.recipients, recipient.id, mode)),
            redirect_url=resolve_redirect_url(recipient, document),
            auto_sign=auto_sign,
            auto_sign_failed=auto_sign.auto_sign_failed,
        )

    async def complete_recipient(
        self,
        token: str,
        request_metadata: Optional[RequestMetadata] = None,
        now: Optional[datetime] = None,
    ) -> CompleteRecipientResponse:
        """
        Mark the recipient as signed, and the document as completed when every
        recipient has signed.

        The document row is locked before the recipient so concurrent
        completions of one document run one after the other, and the unsigned
        recipients are counted again after this recipient's write.
        """
        try:
            recipient = await self._get_recipient(token)
            document = await self.repo.get_document(recipient.document_id, for_update=True)
            recipient = await self._get_recipient(token, for_update=True)
            mode = document.signing_order_mode

            if document.status != DocumentStatus.PENDING:
                raise DocumentNotPendingException(document.id)
            if recipient.signing_status == SigningStatus.SIGNED:
                raise RecipientAlreadySignedException(recipient.id)
            if not is_recipients_turn(recipient, document.recipients, mode):
                raise InvalidStateException("It is not this recipient's turn to sign")

            fields = await self.repo.list_recipient_fields(recipient.id, for_update=True)
            missing: List[int] = [field.id for field in fields if is_field_required(field) and not field.inserted]
            if missing:
                raise InvalidStateException(
                    f"Required fields are not inserted: {', '.join(str(field_id) for field_id in missing)}"
                )

            moment = now or datetime.now(timezone.utc)
            recipient.signing_status = SigningStatus.SIGNED
            recipient.signed_at = moment

            await audit_trail_service.create_audit_log(
                self.repo.db, AuditLogType.DOCUMENT_RECIPIENT_COMPLETED,
                document_id=document.id,
                recipient=recipient,
                data={"recipient_id": recipient.id, "recipient_role": recipient.role.value},
                request_metadata=request_metadata,
            )
            await notification_service.enqueue(
                self.repo.db, EventType.DOCUMENT_SIGNED,
                document_id=document.id,
                recipient_id=recipient.id,
            )

            await self.repo.flush()
            document_completed = not await self.repo.list_unsigned_recipient_ids(document.id)
            if document_completed:
                document.status = DocumentStatus.COMPLETED
                document.completed_at = moment
                await audit_trail_service.create_audit_log(
                    self.repo.db, AuditLogType.DOCUMENT_COMPLETED,
                    document_id=document.id,
                    data={"recipient_count": len(document.recipients)},
                    request_metadata=request_metadata,
                )
                await notification_service.enqueue(
                    self.repo.db, EventType.DOCUMENT_COMPLETED,
                    document_id=document.id,
                )

            await self.repo.commit()

        except (FieldMutationException, UnauthorizedException) as e:
            await self.repo.rollback()
            logger.warning("Recipient completion rejected", code=e.code, reason=e.message)
            raise
        except Exception as e:
            await self.repo.rollback()
            logger.error("Error completing recipient", error=str(e), exc_info=True)
            raise

        logger.info(
            "Recipient completed", recipient_id=recipient.id,
            document_id=document.id, document_completed=document_completed,
        )
        return CompleteRecipientResponse(
            recipient=RecipientResponse.model_validate(recipient),
            document_status=document.status,
            document_completed=document_completed,
            next_recipient=_recipient_response(next_recipient(document.recipients, recipient.id, mode)),
            redirect_url=resolve_redirect_url(recipient, document),
        )

