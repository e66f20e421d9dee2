# docsign/recipients/repository.py

"""
Data Access Layer for recipients and the documents they act on.
"""

from typing import List, Optional

from sqlalchemy import asc, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docsign.documents.models import Document, Recipient
from docsign.documents.schemas import ReadStatus, SigningStatus
from docsign.utils.logger import get_logger

logger = get_logger(__name__)


class RecipientRepository:
    """
    Data Access Layer for Recipient lookups.

    Recipients and documents are always read from fresh rows. Callers take the
    document from ``get_document`` rather than through ``Recipient.document``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_token(self, token: str, for_update: bool = False) -> Optional[Recipient]:
        """Resolve a signing token to its recipient."""
        if not token:
            return None

        stmt = (
            select(Recipient)
            .where(Recipient.token == token)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_document(self, document_id: int, for_update: bool = False) -> Optional[Document]:
        """
        Get a document with its meta and all of its recipients. With
        ``for_update`` the document row stays locked until the transaction ends.
        """
        stmt = (
            select(Document)
            .where(Document.id == document_id)
            .options(
                selectinload(Document.recipients),
                selectinload(Document.document_meta),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_unsigned_recipient_ids(self, document_id: int) -> List[int]:
        """
        Recipients of the document that have not signed yet, read with a
        locking read so a concurrent completion is never missed.
        """
        stmt = (
            select(Recipient.id)
            .where(
                Recipient.document_id == document_id,
                Recipient.signing_status != SigningStatus.SIGNED,
            )
            .order_by(asc(Recipient.id))
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_opened(self, recipient_id: int) -> bool:
        """
        Flip the recipient to OPENED. Returns False when another request
        already did, so the first view is recorded exactly once.
        """
        stmt = (
            update(Recipient)
            .where(Recipient.id == recipient_id, Recipient.read_status != ReadStatus.OPENED)
            .values(read_status=ReadStatus.OPENED)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.db.commit()
        logger.debug("Transaction committed")

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self.db.rollback()
        logger.warning("Transaction rolled back")
