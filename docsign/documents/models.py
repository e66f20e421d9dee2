# docsign/documents/models.py

"""
SQLAlchemy 2.x models for documents, their signing settings and recipients.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docsign.core.db import Base, AuditMixin
from docsign.documents.schemas import (
    DocumentStatus, ReadStatus, RecipientRole, SigningOrderMode, SigningStatus,
)
from docsign.utils.date_formats import DEFAULT_DOCUMENT_DATE_FORMAT, DEFAULT_DOCUMENT_TIME_ZONE


class Document(Base, AuditMixin):
    """
    Document model.

    A document is signable only while PENDING; once COMPLETED none of its
    fields may change.
    """
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.DRAFT, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    document_meta: Mapped[Optional["DocumentMeta"]] = relationship(
        "DocumentMeta", back_populates="document", uselist=False,
        cascade="all, delete-orphan", lazy="selectin",
    )
    recipients: Mapped[List["Recipient"]] = relationship(
        "Recipient", back_populates="document",
        cascade="all, delete-orphan", order_by="Recipient.id",
    )

    @property
    def signing_order_mode(self) -> SigningOrderMode:
        """Signing order configured on the document meta, parallel when unset."""
        if self.document_meta is None or self.document_meta.signing_order is None:
            return SigningOrderMode.PARALLEL
        return self.document_meta.signing_order

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, title={self.title}, status={self.status})>"


class DocumentMeta(Base, AuditMixin):
    """Signing settings of a document."""
    __tablename__ = "document_meta"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    signing_order: Mapped[SigningOrderMode] = mapped_column(
        Enum(SigningOrderMode), default=SigningOrderMode.PARALLEL, nullable=False
    )
    date_format: Mapped[str] = mapped_column(String(64), default=DEFAULT_DOCUMENT_DATE_FORMAT, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default=DEFAULT_DOCUMENT_TIME_ZONE, nullable=False)
    typed_signature_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    upload_signature_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    draw_signature_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    redirect_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    document: Mapped["Document"] = relationship("Document", back_populates="document_meta")


class Recipient(Base, AuditMixin):
    """
    A party invited to view, sign or approve a document.

    Recipients authenticate to the signing flow with their unique token.
    """
    __tablename__ = "recipients"

    __table_args__ = (
        Index("idx_recipient_document", "document_id", "signing_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    token: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    role: Mapped[RecipientRole] = mapped_column(
        Enum(RecipientRole), default=RecipientRole.SIGNER, nullable=False
    )
    signing_status: Mapped[SigningStatus] = mapped_column(
        Enum(SigningStatus), default=SigningStatus.NOT_SIGNED, nullable=False
    )
    read_status: Mapped[ReadStatus] = mapped_column(
        Enum(ReadStatus), default=ReadStatus.NOT_OPENED, nullable=False
    )
    signing_order: Mapped[Optional[int]] = mapped_column(nullable=True, comment="Only used for sequential signing")
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    redirect_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    document: Mapped["Document"] = relationship("Document", back_populates="recipients")

    def __repr__(self) -> str:
        return (
            f"<Recipient(id={self.id}, "
            f"document_id={self.document_id}, "
            f"role={self.role}, "
            f"signing_status={self.signing_status}, "
            f"signing_order={self.signing_order})>"
        )
