## docsign/audit_trail/models.py

# Standard library imports
from typing import Any, Dict, Optional

# Third party imports
from sqlalchemy import Enum, ForeignKey, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

# Local imports
from docsign.core.db import Base, AuditMixin
from docsign.audit_trail.schemas import AuditLogType


class DocumentAuditLog(Base, AuditMixin):
    """Append-only record of a state-changing action on a document"""
    __tablename__ = "document_audit_logs"

    __table_args__ = (
        Index("idx_audit_document", "document_id", "type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[AuditLogType] = mapped_column(Enum(AuditLogType), nullable=False)

    # Actor
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    recipient_id: Mapped[Optional[int]] = mapped_column(nullable=True)

    # Request metadata
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<DocumentAuditLog(id={self.id}, document_id={self.document_id}, type={self.type})>"
