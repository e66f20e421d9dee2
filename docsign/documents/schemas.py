# docsign/documents/schemas.py

"""
Pydantic schemas and enums for documents and their recipients.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


# === Enums ===

class DocumentStatus(str, Enum):
    """Document lifecycle status."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class SigningOrderMode(str, Enum):
    """Whether recipients must sign one after another."""
    SEQUENTIAL = "SEQUENTIAL"
    PARALLEL = "PARALLEL"


class RecipientRole(str, Enum):
    """Role of a recipient on a document."""
    SIGNER = "SIGNER"
    APPROVER = "APPROVER"
    VIEWER = "VIEWER"
    ASSISTANT = "ASSISTANT"


class SigningStatus(str, Enum):
    """Signing status of a recipient."""
    NOT_SIGNED = "NOT_SIGNED"
    SIGNED = "SIGNED"


class ReadStatus(str, Enum):
    """Whether a recipient has opened the document."""
    NOT_OPENED = "NOT_OPENED"
    OPENED = "OPENED"


# === Response Schemas ===

class DocumentMetaResponse(BaseModel):
    """Signing related document settings."""
    signing_order: SigningOrderMode
    date_format: str
    timezone: str
    typed_signature_enabled: bool
    upload_signature_enabled: bool
    draw_signature_enabled: bool
    redirect_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(BaseModel):
    """Document as seen by a recipient."""
    id: int
    title: str
    status: DocumentStatus
    completed_at: Optional[datetime] = None
    document_meta: Optional[DocumentMetaResponse] = None

    model_config = ConfigDict(from_attributes=True)


class RecipientResponse(BaseModel):
    """Recipient details without the access token."""
    id: int
    name: str
    email: str
    role: RecipientRole
    signing_status: SigningStatus
    read_status: ReadStatus
    signing_order: Optional[int] = None
    signed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
