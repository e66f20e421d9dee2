# docsign/signing/schemas.py

"""
Pydantic schemas for the recipient signing session.
"""

from typing import List, Optional

from pydantic import BaseModel

from docsign.documents.schemas import DocumentResponse, DocumentStatus, RecipientResponse
from docsign.fields.schemas import FieldResponse


class AutoSignFailure(BaseModel):
    """A field the auto-sign trigger could not fill."""
    field_id: int
    code: str
    message: str


class AutoSignResult(BaseModel):
    """Outcome of one auto-sign run."""
    inserted_field_ids: List[int] = []
    failures: List[AutoSignFailure] = []
    skipped_reason: Optional[str] = None

    @property
    def auto_sign_failed(self) -> bool:
        return bool(self.failures)


class SigningSessionResponse(BaseModel):
    """Everything the signing page needs for one recipient."""
    document: DocumentResponse
    recipient: RecipientResponse
    fields: List[FieldResponse]
    is_recipients_turn: bool
    next_recipient: Optional[RecipientResponse] = None
    redirect_url: Optional[str] = None
    auto_sign: AutoSignResult
    auto_sign_failed: bool = False


class CompleteRecipientResponse(BaseModel):
    """Result of a recipient completing the document."""
    recipient: RecipientResponse
    document_status: DocumentStatus
    document_completed: bool
    next_recipient: Optional[RecipientResponse] = None
    redirect_url: Optional[str] = None
