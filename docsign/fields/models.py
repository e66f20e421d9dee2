# docsign/fields/models.py

"""
SQLAlchemy 2.x models for Fields module.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Enum, Float, ForeignKey, Index, JSON, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docsign.core.db import Base, AuditMixin
from docsign.documents.models import Document, Recipient  # noqa: F401  registers the referenced tables
from docsign.fields.schemas import FieldType


class Field(Base, AuditMixin):
    """
    A fillable placeholder on a document assigned to exactly one recipient.

    ``inserted`` is true exactly when a value exists: ``custom_text`` for
    non-signature kinds, a Signature row for SIGNATURE fields.
    """
    __tablename__ = "fields"

    __table_args__ = (
        Index("idx_field_recipient", "recipient_id", "type", "inserted"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    secondary_id: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4())
    )
    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    recipient_id: Mapped[int] = mapped_column(ForeignKey("recipients.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[FieldType] = mapped_column(Enum(FieldType), nullable=False)

    page: Mapped[int] = mapped_column(default=1, nullable=False)
    position_x: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    position_y: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    width: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    height: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    inserted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    custom_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    field_meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    signature: Mapped[Optional["Signature"]] = relationship(
        "Signature", back_populates="field", uselist=False,
        cascade="all, delete-orphan", lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Field(id={self.id}, "
            f"type={self.type}, "
            f"recipient_id={self.recipient_id}, "
            f"inserted={self.inserted})>"
        )


class Signature(Base, AuditMixin):
    """Signature captured for a SIGNATURE field: an image or typed text, never both."""
    __tablename__ = "signatures"

    __table_args__ = (
        CheckConstraint(
            "(signature_image_as_base64 IS NULL) <> (typed_signature IS NULL)",
            name="check_signature_single_value",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    field_id: Mapped[int] = mapped_column(
        ForeignKey("fields.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    recipient_id: Mapped[int] = mapped_column(ForeignKey("recipients.id", ondelete="CASCADE"), nullable=False)
    signature_image_as_base64: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    typed_signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    field: Mapped["Field"] = relationship("Field", back_populates="signature")

    def __repr__(self) -> str:
        kind = "image" if self.signature_image_as_base64 else "typed"
        return f"<Signature(id={self.id}, field_id={self.field_id}, kind={kind})>"
