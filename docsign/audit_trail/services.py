## docsign/audit_trail/services.py

# Standard library imports
from typing import Any, Dict, List, Optional

# Third party imports
from fastapi import Request
from sqlalchemy import asc, select
from sqlalchemy.ext.asyncio import AsyncSession

# Local imports
from docsign.utils.logger import get_logger
from docsign.audit_trail.models import DocumentAuditLog
from docsign.audit_trail.schemas import AuditLogType, RequestMetadata

logger = get_logger(__name__)


class AuditTrailService:
    """Service for document audit log operations"""

    async def create_audit_log(
            self, db: AsyncSession,
            log_type: AuditLogType,
            document_id: int,
            recipient=None,
            data: Optional[Dict[str, Any]] = None,
            request_metadata: Optional[RequestMetadata] = None,
    ) -> DocumentAuditLog:
        """
        Append an audit entry to the caller's transaction.

        The entry is flushed but not committed: it becomes visible together with
        the state change it records, or not at all.
        """
        entry = DocumentAuditLog(
            document_id=document_id,
            type=log_type,
            name=recipient.name if recipient else None,
            email=recipient.email if recipient else None,
            recipient_id=recipient.id if recipient else None,
            ip_address=request_metadata.ip_address if request_metadata else None,
            user_agent=request_metadata.user_agent if request_metadata else None,
            data=data or {},
        )
        db.add(entry)
        await db.flush()
        logger.debug("Audit log appended", document_id=document_id, type=log_type.value)
        return entry

    async def get_document_audit_logs(
            self, db: AsyncSession, document_id: int,
            log_type: Optional[AuditLogType] = None,
    ) -> List[DocumentAuditLog]:
        """Get audit log of a document, oldest first"""
        stmt = select(DocumentAuditLog).where(DocumentAuditLog.document_id == document_id)
        if log_type:
            stmt = stmt.where(DocumentAuditLog.type == log_type)
        stmt = stmt.order_by(asc(DocumentAuditLog.id))

        result = await db.execute(stmt)
        return list(result.scalars().all())


audit_trail_service = AuditTrailService()


def get_request_metadata(request: Request) -> RequestMetadata:
    """
    Dependency capturing where a recipient action came from
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    ip_address = forwarded_for.split(",")[0].strip() if forwarded_for else None
    if not ip_address and request.client:
        ip_address = request.client.host
    return RequestMetadata(ip_address=ip_address, user_agent=request.headers.get("user-agent"))
