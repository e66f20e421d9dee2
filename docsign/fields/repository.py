# docsign/fields/repository.py

"""
Data Access Layer for Fields module using SQLAlchemy 2.x
"""

from typing import List, Optional

from sqlalchemy import asc, select
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.fields.models import Field, Signature
from docsign.fields.schemas import FieldType
from docsign.recipients.repository import RecipientRepository
from docsign.utils.logger import get_logger

logger = get_logger(__name__)


class FieldRepository(RecipientRepository):
    """
    Data Access Layer for Field and Signature operations.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db)
        logger.debug("FieldRepository initialized", session_id=id(db))

    async def get_recipient_field(self, field_id: int, recipient_id: int) -> Optional[Field]:
        """
        Get a field owned by the recipient, locking its row for the rest of the
        transaction where the backend supports it.
        """
        stmt = (
            select(Field)
            .where(Field.id == field_id, Field.recipient_id == recipient_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recipient_fields(self, recipient_id: int, for_update: bool = False) -> List[Field]:
        """All fields assigned to a recipient"""
        stmt = (
            select(Field)
            .where(Field.recipient_id == recipient_id)
            .order_by(asc(Field.page), asc(Field.id))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_uninserted_field_ids(self, recipient_id: int, field_type: FieldType) -> List[int]:
        """Ids of the recipient's fields of one type that hold no value yet"""
        stmt = (
            select(Field.id)
            .where(
                Field.recipient_id == recipient_id,
                Field.type == field_type,
                Field.inserted.is_(False),
            )
            .order_by(asc(Field.id))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add_signature(
            self, field: Field,
            signature_image_as_base64: Optional[str] = None,
            typed_signature: Optional[str] = None,
    ) -> Signature:
        """Create the signature row of a SIGNATURE field"""
        signature = Signature(
            field_id=field.id,
            recipient_id=field.recipient_id,
            signature_image_as_base64=signature_image_as_base64,
            typed_signature=typed_signature,
        )
        self.db.add(signature)
        await self.db.flush()
        await self.db.refresh(signature)
        await self.db.refresh(field, ["signature"])
        return signature

    async def delete_signature(self, field: Field) -> bool:
        """Delete the field's signature, if any. Returns whether one existed."""
        if field.signature is None:
            return False

        await self.db.delete(field.signature)
        await self.db.flush()
        await self.db.refresh(field, ["signature"])
        return True

    async def flush(self) -> None:
        await self.db.flush()
