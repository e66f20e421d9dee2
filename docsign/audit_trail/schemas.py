## docsign/audit_trail/schemas.py

# Standard library imports
from enum import Enum as PyEnum
from datetime import datetime
from typing import Optional, Dict, Any

# Third party imports
from pydantic import BaseModel, ConfigDict


class AuditLogType(str, PyEnum):
    """Document audit log types"""
    DOCUMENT_OPENED = "DOCUMENT_OPENED"
    DOCUMENT_FIELD_INSERTED = "DOCUMENT_FIELD_INSERTED"
    DOCUMENT_FIELD_UNINSERTED = "DOCUMENT_FIELD_UNINSERTED"
    DOCUMENT_RECIPIENT_COMPLETED = "DOCUMENT_RECIPIENT_COMPLETED"
    DOCUMENT_COMPLETED = "DOCUMENT_COMPLETED"


class RequestMetadata(BaseModel):
    """Where a recipient action came from"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLogResponse(BaseModel):
    """Audit log entry response"""
    id: int
    document_id: int
    type: AuditLogType
    name: Optional[str] = None
    email: Optional[str] = None
    recipient_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    data: Dict[str, Any] = {}
    created_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
