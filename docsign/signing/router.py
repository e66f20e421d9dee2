# docsign/signing/router.py

"""
FastAPI router for the recipient signing session.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from docsign.audit_trail.schemas import RequestMetadata
from docsign.audit_trail.services import get_request_metadata
from docsign.core.db import get_session_factory
from docsign.fields.exceptions import FieldMutationException, UnauthorizedException, as_http_exception
from docsign.notifications.services import notification_service
from docsign.notifications.sinks import EventSink, get_event_sink
from docsign.signing.schemas import AutoSignResult, CompleteRecipientResponse, SigningSessionResponse
from docsign.signing.services import AutoSignService, SigningService
from docsign.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sign",
    tags=["Signing"],
    responses={401: {"description": "Invalid signing token"}},
)


@router.get("/{token}", response_model=SigningSessionResponse)
async def get_signing_session(
    token: str,
    background_tasks: BackgroundTasks,
    request_metadata: RequestMetadata = Depends(get_request_metadata),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    sink: EventSink = Depends(get_event_sink),
    signing_service: SigningService = Depends(),
):
    """
    Open the document for signing. The first view is recorded and empty DATE
    fields are filled in.
    """
    try:
        session = await signing_service.load_session(token, request_metadata)
    except UnauthorizedException as e:
        raise as_http_exception(e) from e

    background_tasks.add_task(notification_service.dispatch_pending, session_factory, sink)
    return session


@router.post("/{token}/auto-sign", response_model=AutoSignResult)
async def auto_sign_fields(
    token: str,
    background_tasks: BackgroundTasks,
    request_metadata: RequestMetadata = Depends(get_request_metadata),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    sink: EventSink = Depends(get_event_sink),
    auto_sign_service: AutoSignService = Depends(),
):
    """
    Fill the recipient's empty DATE fields
    """
    try:
        result = await auto_sign_service.auto_sign_date_fields(token, request_metadata)
    except UnauthorizedException as e:
        raise as_http_exception(e) from e

    background_tasks.add_task(notification_service.dispatch_pending, session_factory, sink)
    return result


@router.post("/{token}/complete", response_model=CompleteRecipientResponse)
async def complete_signing(
    token: str,
    background_tasks: BackgroundTasks,
    request_metadata: RequestMetadata = Depends(get_request_metadata),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    sink: EventSink = Depends(get_event_sink),
    signing_service: SigningService = Depends(),
):
    """
    Complete signing for the recipient
    """
    try:
        result = await signing_service.complete_recipient(token, request_metadata)
    except (FieldMutationException, UnauthorizedException) as e:
        raise as_http_exception(e) from e

    background_tasks.add_task(notification_service.dispatch_pending, session_factory, sink)
    return result
