## docsign/audit_trail/router.py

# Standard library imports
from typing import List, Optional

# Third party imports
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

# Local application imports
from docsign.utils.logger import get_logger
from docsign.core.db import get_async_db
from docsign.audit_trail.schemas import AuditLogResponse, AuditLogType
from docsign.audit_trail.services import audit_trail_service
from docsign.fields.exceptions import UnauthorizedException, as_http_exception
from docsign.recipients.repository import RecipientRepository

router = APIRouter(prefix="/audit-trail", tags=["Audit Trail"])
logger = get_logger(__name__)


@router.get("/sign/{token}", response_model=List[AuditLogResponse])
async def get_recipient_audit_trail(
    token: str,
    log_type: Optional[AuditLogType] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Audit log of the document the signing token belongs to.
    """
    recipient = await RecipientRepository(db).get_by_token(token)
    if recipient is None:
        raise as_http_exception(UnauthorizedException())

    logs = await audit_trail_service.get_document_audit_logs(db, recipient.document_id, log_type=log_type)
    return [AuditLogResponse.model_validate(log) for log in logs]
