## docsign/notifications/schemas.py

# Standard library imports
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, Optional

# Third party imports
from pydantic import BaseModel, ConfigDict


class EventType(str, PyEnum):
    """Signing lifecycle events published to subscribers"""
    FIELD_SIGNED = "FIELD_SIGNED"
    FIELD_UNSIGNED = "FIELD_UNSIGNED"
    DOCUMENT_OPENED = "DOCUMENT_OPENED"
    DOCUMENT_SIGNED = "DOCUMENT_SIGNED"
    DOCUMENT_COMPLETED = "DOCUMENT_COMPLETED"


class EventStatus(str, PyEnum):
    """Delivery status of an outbox event"""
    PENDING = "PENDING"
    DISPATCHING = "DISPATCHING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class SigningEventResponse(BaseModel):
    """Outbox event as published"""
    id: int
    event_type: EventType
    document_id: int
    recipient_id: Optional[int] = None
    field_id: Optional[int] = None
    payload: Dict[str, Any] = {}
    created_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DispatchResult(BaseModel):
    """Outcome of one outbox dispatch run"""
    delivered: int = 0
    failed: int = 0
    gave_up: int = 0
    skipped: int = 0
