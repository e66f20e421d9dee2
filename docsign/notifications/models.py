## docsign/notifications/models.py

# Standard library imports
from datetime import datetime
from typing import Any, Dict, Optional

# Third party imports
from sqlalchemy import DateTime, Enum, ForeignKey, Index, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

# Local imports
from docsign.core.db import Base, AuditMixin
from docsign.notifications.schemas import EventStatus, EventType


class SigningEvent(Base, AuditMixin):
    """
    Transactional outbox row.

    Written in the same transaction as the state change it announces and
    published to the event sink afterwards.
    """
    __tablename__ = "signing_events"

    __table_args__ = (
        Index("idx_signing_event_status", "status", "id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    event_type: Mapped[EventType] = mapped_column(Enum(EventType), nullable=False)
    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    recipient_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    field_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus), default=EventStatus.PENDING, nullable=False
    )
    attempts: Mapped[int] = mapped_column(default=0, nullable=False)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SigningEvent(id={self.id}, event_type={self.event_type}, status={self.status})>"
